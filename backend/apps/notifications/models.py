from __future__ import annotations

from django.conf import settings
from django.db import models

User = settings.AUTH_USER_MODEL


class Notification(models.Model):
    """
    站内通知：
    - recipients 在创建时快照，之后新加入的成员不会补收
    - read_by 记录已读用户；离线用户通过列表接口补拉，实时推送不保证送达
    """

    class Type(models.TextChoices):
        INFO = "info", "消息"
        UPDATE = "update", "更新"
        ALERT = "alert", "提醒"

    title = models.CharField("标题", max_length=200)
    message = models.TextField("正文", blank=True, default="")
    type = models.CharField("通知类型", max_length=20, choices=Type.choices, default=Type.INFO)
    link = models.CharField("跳转链接", max_length=500, blank=True, default="")
    event = models.ForeignKey(
        "events.Event",
        verbose_name="关联活动",
        related_name="notifications",
        null=True,
        blank=True,
        on_delete=models.CASCADE,
    )
    team = models.ForeignKey(
        "events.Team",
        verbose_name="关联队伍",
        related_name="notifications",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    recipients = models.ManyToManyField(User, related_name="notifications", verbose_name="接收人")
    read_by = models.ManyToManyField(User, related_name="read_notifications", blank=True, verbose_name="已读用户")
    created_by = models.ForeignKey(
        User,
        verbose_name="发送人",
        related_name="sent_notifications",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    created_at = models.DateTimeField("创建时间", auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "通知"
        verbose_name_plural = "通知"

    def __str__(self) -> str:
        return f"{self.get_type_display()} - {self.title}"
