"""
访问令牌工具

本服务不负责登录，只读取外部账户服务签发的 access token；
测试与 WebSocket 握手共用这里的签发/解析逻辑，保证与 HTTP 认证使用同一套 SIMPLE_JWT 配置
"""

from __future__ import annotations

from typing import Any, Optional

from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken, TokenError as SimpleJWTError

from apps.common.exceptions import TokenError


def issue_access_token(user: Any) -> str:
    """
    为用户签发 access token（仅测试与内部工具使用）
    """
    return str(AccessToken.for_user(user))


def decode_user_id(raw_token: str) -> Optional[int]:
    """
    校验 access token 并取出用户 ID；签名错误或过期抛 TokenError(40102)

    载荷中没有用户字段时返回 None
    """
    try:
        token = AccessToken(raw_token)
    except SimpleJWTError as exc:
        raise TokenError() from exc
    user_id = token.get(api_settings.USER_ID_CLAIM)
    if user_id in (None, ""):
        return None
    return int(user_id)
