"""
WebSocket 握手鉴权

令牌来源（依次）：Authorization: Bearer <token> 头、?token= 查询参数
解析失败或用户已停用时 scope["user"] 为匿名用户，是否拒绝连接由各 Consumer 决定
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser

from apps.common.exceptions import TokenError
from apps.common.infra.jwt_provider import decode_user_id
from apps.common.infra.logger import get_logger, logger_extra

logger = get_logger(__name__)


def _extract_token(scope) -> Optional[str]:
    for name, value in scope.get("headers") or []:
        if name.lower() != b"authorization":
            continue
        scheme, _, credential = value.decode("latin-1").partition(" ")
        if scheme.lower() == "bearer" and credential.strip():
            return credential.strip()
    query = parse_qs(scope.get("query_string", b"").decode())
    values = query.get("token") or []
    return values[0] if values else None


@database_sync_to_async
def _load_active_user(user_id: int):
    return get_user_model().objects.filter(pk=user_id, is_active=True).first()


async def resolve_scope_user(scope):
    token = _extract_token(scope)
    if not token:
        return AnonymousUser()
    try:
        user_id = decode_user_id(token)
    except TokenError:
        logger.info("WebSocket 握手令牌无效", extra=logger_extra({"path": scope.get("path")}))
        return AnonymousUser()
    if user_id is None:
        return AnonymousUser()
    return await _load_active_user(user_id) or AnonymousUser()


class JWTAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        scope["user"] = await resolve_scope_user(scope)
        return await super().__call__(scope, receive, send)
