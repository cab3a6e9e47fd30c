"""
ASGI 入口

- http：Django 视图
- websocket：校验 Origin → 解析 JWT 用户 → 按路径分发到个人通知 / 活动排行榜通道
"""

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "Config.settings")

from django.core.asgi import get_asgi_application

# Consumer 与中间件会导入模型，必须在 AppRegistry 就绪后再导入
django_application = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from Config.routing import websocket_urlpatterns  # noqa: E402
from apps.common.ws_auth import JWTAuthMiddleware  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_application,
        "websocket": AllowedHostsOriginValidator(JWTAuthMiddleware(URLRouter(websocket_urlpatterns))),
    }
)
