from __future__ import annotations

from apps.common.utils.request_context import (
    clear_request_context,
    generate_request_id,
    get_request_context,
    set_request_context,
)

REQUEST_ID_HEADER = "X-Request-ID"


def client_ip(request) -> str:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()
    return request.META.get("REMOTE_ADDR", "") or ""


class RequestContextMiddleware:
    """
    为每个 HTTP 请求建立日志上下文，并在响应头回写 X-Request-ID

    此时只知道路径与来源 IP；JWT 用户由 JWTAuthentication 在认证阶段补写
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        set_request_context(
            request_id=request_id,
            path=request.path,
            method=request.method,
            ip=client_ip(request),
        )
        try:
            response = self.get_response(request)
            response[REQUEST_ID_HEADER] = get_request_context()["request_id"] or request_id
            return response
        finally:
            clear_request_context()
