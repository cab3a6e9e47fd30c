# apps/notifications/schemas.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from apps.common.base.base_schema import BaseSchema
from apps.common.exceptions import ValidationError
from apps.common.utils.validators import forbid_dangerous_html, parse_positive_int

from .models import Notification


@dataclass
class EventBroadcastSchema(BaseSchema[None]):
    """
    活动群发入参：
    - team_ids 只收窄“队伍成员”这一来源，报名人与显式 user_ids 仍会并入
    """
    auto_validate: ClassVar[bool] = True

    title: str = ""
    message: str = ""
    type: str = Notification.Type.INFO
    link: str = ""
    team_ids: list = field(default_factory=list)
    user_ids: list = field(default_factory=list)

    def validate(self) -> None:
        self.title = (self.title or "").strip()
        if not self.title:
            raise ValidationError(message="通知标题不能为空")
        forbid_dangerous_html(self.title, field_name="通知标题")
        self.message = (self.message or "").strip()
        forbid_dangerous_html(self.message, field_name="通知正文")
        if self.type not in Notification.Type.values:
            raise ValidationError(message="通知类型只能是 info / update / alert")
        self.link = (self.link or "").strip()
        forbid_dangerous_html(self.link, field_name="跳转链接")
        self.team_ids = self._ids(self.team_ids, "team_ids")
        self.user_ids = self._ids(self.user_ids, "user_ids")

    @staticmethod
    def _ids(values, field_name: str) -> list[int]:
        if values is None:
            return []
        if not isinstance(values, list):
            raise ValidationError(message=f"{field_name} 必须为数组")
        return list(dict.fromkeys(parse_positive_int(v, field_name=field_name) for v in values))
