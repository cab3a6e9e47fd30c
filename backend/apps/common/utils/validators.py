"""
校验工具集合：提供常用字段格式与数值范围校验
"""

from __future__ import annotations

import math
from typing import Any, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email as django_validate_email

from apps.common.exceptions import ScoreOutOfRangeError, ValidationError


def validate_email(email: str) -> None:
    """校验邮箱格式，不通过抛出 ValidationError"""
    try:
        django_validate_email(email)
    except DjangoValidationError as exc:
        raise ValidationError(message="邮箱格式不正确") from exc


def normalize_email(email: Optional[str]) -> str:
    """邮箱统一去空格并转小写，比较前两侧都需经过此处理"""
    return (email or "").strip().lower()


def forbid_dangerous_html(value: str, *, field_name: str = "字段") -> None:
    """
    拒绝常见危险 HTML 片段（如 <script>/<iframe>/javascript: 等），降低 XSS 风险
    """
    if not value:
        return
    lower = value.lower()
    dangerous_markers = [
        "<script",
        "javascript:",
        "onerror=",
        "onload=",
        "<iframe",
        "<object",
        "<embed",
    ]
    if any(marker in lower for marker in dangerous_markers):
        raise ValidationError(message=f"{field_name} 含有潜在危险的 HTML/脚本片段")


def parse_positive_int(value: Any, *, field_name: str, required: bool = True) -> Optional[int]:
    """
    解析正整数标识（路径/查询/请求体中的 ID、limit 等）
    - 缺省且非必填返回 None
    - 非整数或 <= 0 抛 ValidationError
    """
    if value is None or value == "":
        if required:
            raise ValidationError(message=f"{field_name} 不能为空")
        return None
    if isinstance(value, bool):
        raise ValidationError(message=f"{field_name} 格式不正确")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(message=f"{field_name} 格式不正确") from exc
    if parsed <= 0:
        raise ValidationError(message=f"{field_name} 必须为正整数")
    return parsed


def parse_score(value: Any, *, field_name: str, minimum: float, maximum: float) -> float:
    """
    解析评分并校验区间 [minimum, maximum]
    - 布尔值、NaN、无穷大一律视为非法
    """
    if isinstance(value, bool) or value is None or value == "":
        raise ValidationError(message=f"{field_name} 必须为数字")
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(message=f"{field_name} 必须为数字") from exc
    if math.isnan(parsed) or math.isinf(parsed):
        raise ValidationError(message=f"{field_name} 必须为有限数字")
    if not minimum <= parsed <= maximum:
        raise ScoreOutOfRangeError(message=f"{field_name} 需在 {minimum:g}-{maximum:g} 之间")
    return parsed
