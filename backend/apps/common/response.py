"""
统一响应结构

    {"code": 0, "message": "OK", "data": ..., "extra": {...}}

- code 为 0 表示成功，非 0 为业务错误码（见 common.exceptions）
- extra 只在有内容时出现：分页信息、统计降级标记、request_id 等
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from rest_framework import status
from rest_framework.response import Response

from .exceptions import BizError

SUCCESS_CODE = 0


def envelope(code: int, message: str, data: Any = None, extra: Optional[Mapping[str, Any]] = None) -> dict:
    body = {"code": code, "message": message, "data": data}
    if extra:
        body["extra"] = dict(extra)
    return body


def api_response(
        *,
        code: int = SUCCESS_CODE,
        message: str = "OK",
        data: Any = None,
        http_status: int = status.HTTP_200_OK,
        extra: Optional[Mapping[str, Any]] = None,
) -> Response:
    return Response(envelope(code, message, data, extra), status=http_status)


def error(exc: BizError) -> Response:
    """
    BizError -> 错误响应；HTTP 状态码取自异常类
    """
    return api_response(
        code=exc.code,
        message=exc.message,
        data=None,
        http_status=exc.http_status,
        extra=exc.extra,
    )


def success(data: Any = None, message: str = "OK", *, extra: Optional[Mapping[str, Any]] = None) -> Response:
    # extra 例：统计降级时 {"degraded": true}
    return api_response(message=message, data=data, extra=extra)


def created(data: Any = None, message: str = "Created") -> Response:
    return api_response(message=message, data=data, http_status=status.HTTP_201_CREATED)


def page_success(items: list, *, page: int, page_size: int, total: int, total_pages: int,
                 has_next: bool, has_previous: bool) -> Response:
    """
    分页列表：data 为当前页，分页信息放在 extra
    """
    return success(
        items,
        extra={
            "page": page,
            "page_size": page_size,
            "total": total,
            "total_pages": total_pages,
            "has_next": has_next,
            "has_previous": has_previous,
        },
    )
