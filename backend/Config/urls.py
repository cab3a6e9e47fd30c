"""
URL configuration for Config project.

- /api/analytics/      统计汇总、趋势、排行榜
- /api/evaluations/    评委评审
- /api/events/         报名、作品评分、评委分配
- /api/notifications/  站内通知
"""
from django.conf import settings
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView, SpectacularRedocView

from apps.common.health import HealthCheckView

admin.site.site_header = f"{settings.SITE_BRAND} 管理后台"
admin.site.site_title = settings.SITE_BRAND
admin.site.index_title = "管理控制台"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', HealthCheckView.as_view()),
    path('api/analytics/', include('apps.analytics.urls')),
    path('api/evaluations/', include('apps.judging.urls')),
    path('api/events/', include('apps.events.urls')),
    path('api/notifications/', include('apps.notifications.urls')),
    # OpenAPI 文档：提供 schema JSON 及 UI
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/schema/swagger-ui/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/schema/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]
