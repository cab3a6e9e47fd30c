"""
通用权限封装（apps.common.permissions）

职责：
- 放置全局可复用的权限类（基于 DRF 的认证结果）
- 封装“登录 / 主办方 / 评委”等常见角色校验
- 未登录抛 AuthError（401），角色不符抛 PermissionDeniedError（403），由全局异常处理器统一包装响应

注意：活动归属、评委分配等资源级校验在 analytics.scoping 中完成，这里只做角色粗筛
"""

from __future__ import annotations

from typing import Any

from django.contrib.auth import get_user_model
from rest_framework.permissions import BasePermission
from rest_framework.request import Request

from .exceptions import AuthError, PermissionDeniedError

User = get_user_model()


def _ensure_authenticated(request: Request) -> User:
    """
    确保用户已登录，返回 User；否则抛 AuthError
    """
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        raise AuthError(message="请先登录后再执行此操作")
    return user


class AllowAny(BasePermission):
    """
    允许任何请求通过（公开接口）
    """

    def has_permission(self, request: Request, view: Any) -> bool:
        return True


class IsAuthenticated(BasePermission):
    """
    需要已登录用户，出错时抛 BizError 便于统一格式
    """

    def has_permission(self, request: Request, view: Any) -> bool:
        _ensure_authenticated(request)
        return True


class HasRole(BasePermission):
    """
    按账户角色放行

    子类声明 allowed_roles 即可，如 IsOrganizer / IsJudge
    """

    allowed_roles: tuple[str, ...] = ()

    def has_permission(self, request: Request, view: Any) -> bool:
        user = _ensure_authenticated(request)
        if getattr(user, "role", None) in self.allowed_roles:
            return True
        raise PermissionDeniedError()


class IsOrganizer(HasRole):
    allowed_roles = ("organizer",)


class IsJudge(HasRole):
    allowed_roles = ("judge",)


class IsOrganizerOrJudge(HasRole):
    allowed_roles = ("organizer", "judge")
