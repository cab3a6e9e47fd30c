"""
请求上下文：在一次 HTTP 请求内共享 request_id 与调用者信息，供日志格式化器读取

使用单个 ContextVar 保存不可变快照，ASGI 并发请求之间互不影响
"""

from __future__ import annotations

import contextvars
import uuid
from dataclasses import asdict, dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class RequestContext:
    request_id: str = ""
    user_id: Optional[int] = None
    username: str = ""
    role: str = ""
    path: str = ""
    method: str = ""
    ip: str = ""


_EMPTY = RequestContext()
_current: contextvars.ContextVar[RequestContext] = contextvars.ContextVar("request_context", default=_EMPTY)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


def set_request_context(
        *,
        request_id: Optional[str] = None,
        user_id: Optional[int] = None,
        username: str = "",
        role: str = "",
        path: str = "",
        method: str = "",
        ip: str = "",
) -> None:
    _current.set(
        RequestContext(
            request_id=request_id or generate_request_id(),
            user_id=user_id,
            username=username or "",
            role=role or "",
            path=path or "",
            method=method or "",
            ip=ip or "",
        )
    )


def clear_request_context() -> None:
    _current.set(_EMPTY)


def get_request_context() -> dict:
    return asdict(_current.get())


def update_request_user(user) -> None:
    """
    认证完成后补齐当前请求的用户信息

    JWT 在 DRF 认证阶段才解析出用户，中间件执行时 request.user 仍是匿名
    """
    current = _current.get()
    _current.set(
        replace(
            current,
            request_id=current.request_id or generate_request_id(),
            user_id=getattr(user, "id", None),
            username=getattr(user, "username", "") or "",
            role=getattr(user, "role", "") or "",
        )
    )
