from django.urls import path

from . import views

app_name = "notifications"

urlpatterns = [
    path("", views.NotificationListView.as_view(), name="list"),
    path("unread-count/", views.NotificationUnreadCountView.as_view(), name="unread-count"),
    path("mark-all-read/", views.NotificationMarkAllReadView.as_view(), name="mark-all-read"),
    path("<int:notification_id>/read/", views.NotificationMarkReadView.as_view(), name="mark-read"),
    # 主办方向本活动参与者群发
    path("events/<int:event_id>/broadcast/", views.EventBroadcastView.as_view(), name="event-broadcast"),
]
