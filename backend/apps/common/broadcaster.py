# -*- coding: utf-8 -*-
"""
实时推送能力（Broadcaster）

- 业务写操作不直接推送，而是返回事件列表（LeaderboardUpdate / NotificationDelivery）
- 视图在事务提交后通过 dispatch_after_commit 交给注入的 Broadcaster 发送
- 推送是尽力而为：没有 channel layer、发送失败都只记日志，不影响写操作的成功响应
- 分组约定：活动排行榜 event_<id>，个人频道 user_<id>
"""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Generic, Iterable, TypeVar, Union

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

from apps.common.infra.logger import get_logger, logger_extra
from apps.common.ws_events import LEADERBOARD_UPDATE, NOTIFICATION_NEW

logger = get_logger(__name__)
_seq_generator = itertools.count(1)

T = TypeVar("T")


def event_group(event_id: int) -> str:
    return f"event_{event_id}"


def user_group(user_id: int) -> str:
    return f"user_{user_id}"


@dataclass(frozen=True)
class LeaderboardUpdate:
    """排行榜刷新信号：只带活动 ID 与原因，不带分数"""
    event_id: int
    reason: str


@dataclass(frozen=True)
class NotificationDelivery:
    """通知投递：接收人列表已去重"""
    recipient_ids: tuple[int, ...]
    payload: dict


PostCommitEvent = Union[LeaderboardUpdate, NotificationDelivery]


@dataclass
class MutationResult(Generic[T]):
    """
    写操作结果：业务对象 + 提交后需要推送的事件
    """
    instance: T
    events: list[PostCommitEvent] = field(default_factory=list)


class Broadcaster(ABC):
    """推送能力抽象，测试可替换为记录型或空实现"""

    @abstractmethod
    def broadcast_leaderboard_change(self, event_id: int, reason: str) -> None:
        ...

    @abstractmethod
    def broadcast_notification(self, recipient_ids: Iterable[int], payload: dict) -> None:
        ...

    def dispatch(self, event: PostCommitEvent) -> None:
        if isinstance(event, LeaderboardUpdate):
            self.broadcast_leaderboard_change(event.event_id, event.reason)
        elif isinstance(event, NotificationDelivery):
            self.broadcast_notification(event.recipient_ids, event.payload)


class NullBroadcaster(Broadcaster):
    """空实现：丢弃所有推送，用于不需要实时通道的调用方"""

    def broadcast_leaderboard_change(self, event_id: int, reason: str) -> None:
        return None

    def broadcast_notification(self, recipient_ids: Iterable[int], payload: dict) -> None:
        return None


class ChannelLayerBroadcaster(Broadcaster):
    """
    基于 Channels group_send 的推送实现
    - 统一附带自增序号 seq，便于前端按序处理/去重
    """

    def _safe_group_send(self, group: str, event: str, data: dict) -> None:
        """
        安全发送组消息：没有 channel layer 时直接跳过，发送失败只记日志
        """
        layer = get_channel_layer()
        if layer is None:
            return
        message = {"type": "broadcast", "event": event, "seq": next(_seq_generator), "data": data}
        try:
            async_to_sync(layer.group_send)(group, message)
        except Exception:
            logger.warning(
                "WebSocket 广播失败，已忽略",
                extra=logger_extra({"group": group, "event": event}),
                exc_info=True,
            )

    def broadcast_leaderboard_change(self, event_id: int, reason: str) -> None:
        self._safe_group_send(event_group(event_id), LEADERBOARD_UPDATE, {"event": event_id, "reason": reason})

    def broadcast_notification(self, recipient_ids: Iterable[int], payload: dict) -> None:
        for user_id in dict.fromkeys(recipient_ids):
            self._safe_group_send(user_group(user_id), NOTIFICATION_NEW, payload)


def _dispatch_one(broadcaster: Broadcaster, event: PostCommitEvent) -> None:
    try:
        broadcaster.dispatch(event)
    except Exception:
        logger.warning(
            "推送事件分发失败，已忽略",
            extra=logger_extra({"event": type(event).__name__}),
            exc_info=True,
        )


def dispatch_after_commit(events: Iterable[PostCommitEvent], broadcaster: Broadcaster) -> None:
    """
    在当前事务提交后逐个分发事件；不在事务中时立即执行

    不抛异常：推送失败不影响调用方的成功响应
    """
    for event in events:
        transaction.on_commit(partial(_dispatch_one, broadcaster, event))


def serialize_datetime(value: Any) -> Any:
    """推送载荷里的时间统一转成 ISO 字符串，channel layer 只接受可序列化数据"""
    return value.isoformat() if hasattr(value, "isoformat") else value
