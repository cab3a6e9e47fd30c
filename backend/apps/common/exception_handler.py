"""
DRF 全局异常处理器

- BizError 及子类：按异常自带的 code/message/http_status 输出
- DRF/Django 内置异常：先翻译成对应的 BizError 再输出
- 其余异常：记录堆栈，返回 50000，只附带 request_id 便于排查
"""

from __future__ import annotations

from typing import Any

from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from . import response
from .exceptions import (
    AuthError,
    BadRequestError,
    BizError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .infra.logger import get_logger, logger_extra
from .utils.request_context import get_request_context

logger = get_logger(__name__)

INTERNAL_ERROR_CODE = 50000


def first_message(detail: Any) -> str:
    """
    取 DRF detail 中的第一条错误文本（detail 可能是 str / list / dict 嵌套）
    """
    while True:
        if isinstance(detail, dict) and detail:
            detail = next(iter(detail.values()))
        elif isinstance(detail, (list, tuple)) and detail:
            detail = detail[0]
        else:
            return str(detail)


def translate(exc: Exception) -> BizError | None:
    if isinstance(exc, BizError):
        return exc
    if isinstance(exc, drf_exceptions.ValidationError):
        return ValidationError(message=first_message(exc.detail), extra={"fields": exc.detail})
    if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
        return AuthError(message=first_message(exc.detail))
    if isinstance(exc, drf_exceptions.PermissionDenied):
        return PermissionDeniedError()
    if isinstance(exc, (drf_exceptions.NotFound, Http404)):
        return NotFoundError()
    if isinstance(exc, drf_exceptions.ParseError):
        return BadRequestError(message=first_message(exc.detail))
    return None


def custom_exception_handler(exc: Exception, context: dict) -> Response | None:
    biz_error = translate(exc)
    if biz_error is not None:
        return response.error(biz_error)

    # 405 / 406 / 415 等框架异常保持原 HTTP 状态
    drf_response = drf_exception_handler(exc, context)
    if drf_response is not None:
        return response.api_response(
            code=drf_response.status_code * 100,
            message=first_message(drf_response.data),
            http_status=drf_response.status_code,
        )

    request = context.get("request")
    logger.exception(
        "接口出现未处理的异常",
        exc_info=exc,
        extra=logger_extra({
            "view": type(context.get("view")).__name__ if context.get("view") else None,
            "path": getattr(request, "path", None),
        }),
    )
    return response.api_response(
        code=INTERNAL_ERROR_CODE,
        message="内部服务器错误，请稍后重试",
        http_status=500,
        extra={"request_id": get_request_context().get("request_id")},
    )
