"""
JWT 认证（apps.common.authentication）

登录与令牌颁发由外部账户服务负责，本服务只校验 access token：
- 优先读取 Authorization: Bearer <token>，其次读取 Cookie（JWT_USE_COOKIE 开启时）
- 未携带凭证返回 None，按匿名处理，是否放行由权限类决定
- 令牌无效/过期 → TokenError(40102)；账户停用 → AccountInactiveError(40103)；其余 → AuthError(40100)
"""

from __future__ import annotations

from typing import Any, Optional

from django.conf import settings
from rest_framework.request import Request
from rest_framework_simplejwt.authentication import JWTAuthentication as SimpleJWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed as SimpleJWTAuthFailed, InvalidToken

from .exceptions import AccountInactiveError, AuthError, BizError, TokenError
from .infra.logger import get_logger, logger_extra
from .utils.request_context import update_request_user

logger = get_logger(__name__)


def _map_auth_failure(exc: SimpleJWTAuthFailed) -> BizError:
    codes = exc.get_codes() if hasattr(exc, "get_codes") else None
    if codes == "user_inactive":
        return AccountInactiveError()
    if codes == "user_not_found":
        return TokenError()
    return AuthError(message=str(getattr(exc, "detail", "")) or None)


class JWTAuthentication(SimpleJWTAuthentication):
    """全局认证类，错误直接抛 BizError 子类"""

    use_cookie: bool = getattr(settings, "JWT_USE_COOKIE", True)
    cookie_name: str = getattr(settings, "JWT_ACCESS_COOKIE_NAME", "hackathon_access_token")

    def _raw_token(self, request: Request) -> Optional[bytes | str]:
        header = self.get_header(request)
        if header is not None:
            raw = self.get_raw_token(header)
            if raw is not None:
                return raw
        if self.use_cookie:
            return request.COOKIES.get(self.cookie_name) or None
        return None

    def authenticate(self, request: Request) -> Optional[tuple[Any, Any]]:
        raw_token = self._raw_token(request)
        if raw_token is None:
            return None

        try:
            validated_token = self.get_validated_token(raw_token)
            user = self.get_user(validated_token)
        except InvalidToken as exc:
            logger.warning("认证失败：无效或过期的 JWT", extra=logger_extra({"reason": "invalid_token"}))
            raise TokenError() from exc
        except SimpleJWTAuthFailed as exc:
            error = _map_auth_failure(exc)
            logger.warning("认证失败：账户校验未通过", extra=logger_extra({"code": error.code}))
            raise error from exc

        update_request_user(user)
        return user, validated_token
