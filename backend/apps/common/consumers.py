# -*- coding: utf-8 -*-
"""
通用 WebSocket 消费者

功能目标：
- 轻量级实时推送，不做持久化/历史消息（离线用户通过通知列表补拉）
- 个人频道 user_<id> 接收 notification:new
- 活动频道 event_<id> 接收 leaderboard:update
"""

from __future__ import annotations

import asyncio
import time

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.conf import settings
from django.contrib.auth.models import AnonymousUser

from apps.common.broadcaster import event_group, user_group


@database_sync_to_async
def _event_exists(event_id: int) -> bool:
    from apps.events.models import Event

    return Event.objects.filter(id=event_id).exists()


class BaseGroupConsumer(AsyncJsonWebsocketConsumer):
    """
    基础 Consumer：
    - require_auth 为 True 时未登录关闭码 4401；公开频道设为 False
    - resolve_group 返回 None 时关闭码 4404
    - 客户端需定期发送 {"type":"ping"}，超时未收到则以 4410 断开
    """

    require_auth: bool = True
    heartbeat_timeout_seconds: int = int(getattr(settings, "WS_HEARTBEAT_TIMEOUT", 120))
    heartbeat_interval_seconds: int = 25
    group_name: str | None = None
    _last_ping: float = 0.0
    _monitor_task: asyncio.Task | None = None

    async def resolve_group(self, user) -> str | None:
        """子类返回要加入的组名；返回 None 表示拒绝"""
        raise NotImplementedError

    async def connect(self):
        user = self.scope.get("user")
        if user is None:
            user = AnonymousUser()
        if self.require_auth and not user.is_authenticated:
            await self.close(code=4401)
            return None
        group = await self.resolve_group(user)
        if group is None:
            await self.close(code=4404)
            return None
        self.group_name = group
        await self.accept()
        if self.channel_layer:
            await self.channel_layer.group_add(self.group_name, self.channel_name)
        self._last_ping = time.time()
        self._monitor_task = asyncio.create_task(self._monitor_heartbeat())
        return None

    async def disconnect(self, close_code):
        if self.group_name and self.channel_layer:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
        if self._monitor_task:
            self._monitor_task.cancel()
        return None

    async def receive_json(self, content, **kwargs):
        """
        统一处理心跳：前端发送 {"type":"ping"}，返回 {"event":"pong"}
        """
        if content.get("type") == "ping":
            self._last_ping = time.time()
            await self.send_json({"event": "pong", "ts": self._last_ping})
        return None

    async def broadcast(self, event):
        """group_send 的统一入口：去掉 type 后透传给前端"""
        await self.send_json({k: v for k, v in event.items() if k != "type"})

    async def _monitor_heartbeat(self):
        try:
            while True:
                await asyncio.sleep(self.heartbeat_interval_seconds)
                if time.time() - self._last_ping > self.heartbeat_timeout_seconds:
                    await self.close(code=4410)
                    break
        except asyncio.CancelledError:
            return None


class NotifyConsumer(BaseGroupConsumer):
    """个人通知通道：登录即可，加入 user_<id>"""

    async def resolve_group(self, user) -> str | None:
        return user_group(user.id)


class EventLeaderboardConsumer(BaseGroupConsumer):
    """活动排行榜通道：排行榜公开，匿名也可订阅；加入 event_<id>，活动不存在时拒绝"""

    require_auth = False

    async def resolve_group(self, user) -> str | None:
        event_id = int(self.scope["url_route"]["kwargs"].get("event_id") or 0)
        if not event_id or not await _event_exists(event_id):
            return None
        return event_group(event_id)
