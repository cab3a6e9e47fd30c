from __future__ import annotations

from typing import Optional

from apps.accounts.repo import UserRepo
from apps.analytics.scoping import ensure_event_owner
from apps.common.base.base_service import BaseService
from apps.common.broadcaster import MutationResult, NotificationDelivery, serialize_datetime
from apps.common.infra.logger import get_logger, logger_extra
from apps.events.models import Event
from apps.events.repo import EventRepo, RegistrationRepo, TeamRepo

from .models import Notification
from .repo import NotificationRepo
from .schemas import EventBroadcastSchema

logger = get_logger(__name__)


def serialize_notification(notification: Notification, *, read: bool) -> dict:
    """通知序列化：read 由调用方按当前用户计算"""
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "link": notification.link,
        "event_id": notification.event_id,
        "team_id": notification.team_id,
        "created_at": notification.created_at,
        "read": read,
    }


def push_payload(notification: Notification) -> dict:
    """notification:new 推送数据，时间转为字符串以便经 channel layer 传输"""
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "link": notification.link,
        "event_id": notification.event_id,
        "created_at": serialize_datetime(notification.created_at),
    }


class NotificationMarkReadService(BaseService[Notification]):
    """标记单条通知已读；非接收人按 404 处理"""

    def __init__(self, repo: NotificationRepo | None = None):
        self.repo = repo or NotificationRepo()

    def perform(self, user, notification_id: int) -> Notification:
        notification = self.repo.get_for_recipient(user, notification_id)
        self.repo.mark_read(user, notification)
        return notification


class NotificationMarkAllReadService(BaseService[int]):
    """标记当前用户所有通知为已读，返回更新条数"""

    def __init__(self, repo: NotificationRepo | None = None):
        self.repo = repo or NotificationRepo()

    def perform(self, user) -> int:
        return self.repo.mark_all_read(user)


class EventRecipientResolver:
    """
    活动通知接收人：
    (a) 活动下队伍成员（可按 team_ids 收窄）
    (b) 邮箱与报名人/团队成员邮箱一致的账户
    (c) 显式指定且存在的用户
    三者取并集去重
    """

    def __init__(
            self,
            team_repo: TeamRepo | None = None,
            registration_repo: RegistrationRepo | None = None,
            user_repo: UserRepo | None = None,
    ):
        self.team_repo = team_repo or TeamRepo()
        self.registration_repo = registration_repo or RegistrationRepo()
        self.user_repo = user_repo or UserRepo()

    def resolve(self, event: Event, *, team_ids: list[int], user_ids: list[int]) -> list[int]:
        recipients: set[int] = set()
        recipients |= self.team_repo.member_ids_for_event(event.id, team_ids)
        recipients |= self.user_repo.ids_by_emails(self.registration_repo.emails_for_event(event.id))
        recipients |= self.user_repo.existing_ids(user_ids)
        return sorted(recipients)


class EventBroadcastService(BaseService[MutationResult[Optional[Notification]]]):
    """
    主办方向活动相关用户群发通知：
    - 仅活动主办方
    - 没有接收人时不落库，返回 instance=None
    - 落库后返回 NotificationDelivery，由调用方在提交后推送
    """

    def __init__(
            self,
            event_repo: EventRepo | None = None,
            notification_repo: NotificationRepo | None = None,
            resolver: EventRecipientResolver | None = None,
    ):
        self.event_repo = event_repo or EventRepo()
        self.notification_repo = notification_repo or NotificationRepo()
        self.resolver = resolver or EventRecipientResolver()

    def perform(self, user, event_id: int, schema: EventBroadcastSchema) -> MutationResult[Optional[Notification]]:
        event = self.event_repo.get_by_id(event_id)
        ensure_event_owner(user, event)
        recipient_ids = self.resolver.resolve(event, team_ids=schema.team_ids, user_ids=schema.user_ids)
        if not recipient_ids:
            logger.info("活动通知没有接收人，已跳过", extra=logger_extra({"event_id": event.id}))
            return MutationResult(instance=None)

        team_id = schema.team_ids[0] if len(schema.team_ids) == 1 else None
        if team_id is not None and not self.resolver.team_repo.exists(pk=team_id, event_id=event.id):
            team_id = None
        notification = self.notification_repo.create_with_recipients(
            {
                "title": schema.title,
                "message": schema.message,
                "type": schema.type,
                "link": schema.link,
                "event": event,
                "team_id": team_id,
                "created_by": user,
            },
            recipient_ids,
        )
        logger.info(
            "活动通知已创建",
            extra=logger_extra(
                {"event_id": event.id, "notification_id": notification.id, "recipients": len(recipient_ids)}
            ),
        )
        return MutationResult(
            instance=notification,
            events=[NotificationDelivery(recipient_ids=tuple(recipient_ids), payload=push_payload(notification))],
        )
