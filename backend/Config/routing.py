# -*- coding: utf-8 -*-
"""
WebSocket 路由：个人通知通道、活动排行榜通道
"""

from django.urls import re_path

from apps.common.consumers import EventLeaderboardConsumer, NotifyConsumer

websocket_urlpatterns = [
    re_path(r"^ws/notify/?$", NotifyConsumer.as_asgi(), name="ws-notify"),
    re_path(
        r"^ws/events/(?P<event_id>\d+)/leaderboard/?$",
        EventLeaderboardConsumer.as_asgi(),
        name="ws-event-leaderboard",
    ),
]
