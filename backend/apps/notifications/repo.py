from __future__ import annotations

from typing import Iterable

from django.db.models import QuerySet

from apps.common.base.base_repo import BaseRepo
from apps.common.exceptions import NotFoundError

from .models import Notification


class NotificationRepo(BaseRepo[Notification]):
    """通知仓储：接收人/已读关系都是多对多，计数与批量已读在这里集中处理"""

    model = Notification

    def for_recipient(self, user, *, unread_only: bool = False) -> QuerySet[Notification]:
        qs = self.filter(recipients=user)
        if unread_only:
            qs = qs.exclude(read_by=user)
        return qs.order_by("-created_at", "-id")

    def get_for_recipient(self, user, notification_id: int) -> Notification:
        """非接收人与不存在一样按 404 处理，不暴露通知是否存在"""
        notification = self.for_recipient(user).filter(pk=notification_id).first()
        if notification is None:
            raise NotFoundError(message="通知不存在")
        return notification

    def read_ids(self, user, notification_ids: Iterable[int]) -> set[int]:
        ids = list(notification_ids)
        if not ids:
            return set()
        return set(self.filter(pk__in=ids, read_by=user).values_list("id", flat=True))

    def unread_count(self, user) -> int:
        return self.for_recipient(user, unread_only=True).count()

    def mark_read(self, user, notification: Notification) -> None:
        notification.read_by.add(user)

    def mark_all_read(self, user) -> int:
        unread = list(self.for_recipient(user, unread_only=True).values_list("id", flat=True))
        if not unread:
            return 0
        through = Notification.read_by.through
        through.objects.bulk_create(
            [through(notification_id=nid, user_id=user.id) for nid in unread],
            ignore_conflicts=True,
        )
        return len(unread)

    def create_with_recipients(self, data: dict, recipient_ids: Iterable[int]) -> Notification:
        notification = self.create(data)
        notification.recipients.add(*recipient_ids)
        return notification
