# -*- coding: utf-8 -*-
"""
按调用者角色解析活动可见范围

- 角色是封闭枚举：主办方 / 评委 / 参赛者 / 匿名，每个角色对应一个策略函数 (user) -> Q
- 所有统计读接口先经过这里拿到 EventScope，再在范围内聚合；范围为空时返回空结果，不报错
- 活动级资源（评审记录、作品打分）的访问判定也集中在这里，视图和服务不再各自判断角色
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from django.db.models import Q, QuerySet
from django.db.models.functions import Lower

from apps.common.exceptions import JudgeNotAssignedError, PermissionDeniedError, ValidationError
from apps.common.utils.validators import normalize_email
from apps.events.models import Event, JudgeAssignment, Registration, RegistrationMember


class Role(str, Enum):
    ORGANIZER = "organizer"
    JUDGE = "judge"
    PARTICIPANT = "participant"
    ANONYMOUS = "anonymous"


def role_of(user) -> Role:
    """未登录或角色缺失一律视为匿名"""
    if user is None or not getattr(user, "is_authenticated", False):
        return Role.ANONYMOUS
    try:
        return Role(getattr(user, "role", None))
    except ValueError:
        return Role.ANONYMOUS


_NOTHING = Q(pk__in=[])


def _organizer_scope(user) -> Q:
    return Q(organizer_id=user.id)


def _judge_scope(user) -> Q:
    return Q(pk__in=JudgeAssignment.objects.filter(judge_id=user.id).values("event_id"))


def _participant_scope(user) -> Q:
    """报名邮箱或团队成员邮箱与账户邮箱一致（忽略大小写）"""
    email = normalize_email(getattr(user, "email", ""))
    if not email:
        return _NOTHING
    by_personal = (
        Registration.objects.annotate(email_lower=Lower("personal_email"))
        .filter(email_lower=email)
        .values("event_id")
    )
    by_member = (
        RegistrationMember.objects.annotate(email_lower=Lower("email"))
        .filter(email_lower=email)
        .values("registration__event_id")
    )
    return Q(pk__in=by_personal) | Q(pk__in=by_member)


def _anonymous_scope(user) -> Q:
    return Q()


SCOPE_STRATEGIES: dict[Role, Callable[[object], Q]] = {
    Role.ORGANIZER: _organizer_scope,
    Role.JUDGE: _judge_scope,
    Role.PARTICIPANT: _participant_scope,
    Role.ANONYMOUS: _anonymous_scope,
}


@dataclass(frozen=True)
class EventScope:
    """解析后的活动过滤条件"""

    role: Role
    condition: Q

    def apply(self, queryset: Optional[QuerySet[Event]] = None) -> QuerySet[Event]:
        qs = queryset if queryset is not None else Event.objects.all()
        return qs.filter(self.condition)

    def event_ids(self) -> list[int]:
        return list(self.apply().order_by("id").values_list("id", flat=True))


def resolve_event_scope(user, *, status: Optional[str] = None) -> EventScope:
    """
    按角色得到活动范围，再叠加显式的 status 过滤
    """
    role = role_of(user)
    condition = SCOPE_STRATEGIES[role](user)
    if status:
        if status not in Event.Status.values:
            raise ValidationError(message="活动状态参数不合法")
        condition &= Q(status=status)
    return EventScope(role=role, condition=condition)


# ------------------------
# 活动级资源访问判定
# ------------------------

def is_event_owner(user, event: Event) -> bool:
    return role_of(user) is Role.ORGANIZER and event.organizer_id == user.id


def is_assigned_judge(user, event: Event) -> bool:
    return role_of(user) is Role.JUDGE and JudgeAssignment.objects.filter(judge_id=user.id, event_id=event.id).exists()


def ensure_event_owner(user, event: Event) -> None:
    if not is_event_owner(user, event):
        raise PermissionDeniedError()


def ensure_assigned_judge(user, event: Event) -> None:
    if not is_assigned_judge(user, event):
        raise JudgeNotAssignedError()


def ensure_can_score(user, event: Event) -> None:
    """作品打分：活动主办方或已分配评委"""
    if is_event_owner(user, event) or is_assigned_judge(user, event):
        return
    raise PermissionDeniedError()


def evaluation_scope(user, event: Event) -> Q:
    """
    评审记录可见范围：
    - 活动主办方：该活动全部评审
    - 已分配评委：仅自己的评审
    - 其他：PermissionDeniedError，错误中不携带任何数据
    """
    if is_event_owner(user, event):
        return Q(event_id=event.id)
    if is_assigned_judge(user, event):
        return Q(event_id=event.id, judge_id=user.id)
    raise PermissionDeniedError()
