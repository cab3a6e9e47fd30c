# apps/analytics/schemas.py

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional

from apps.common.base.base_schema import BaseSchema
from apps.common.exceptions import ValidationError
from apps.common.utils.validators import parse_positive_int


# Schema 层：统计查询参数的结构化与校验

ROLLUP_SORT_FIELDS: tuple[str, ...] = (
    "start_date",
    "title",
    "registrations",
    "submissions",
    "conversion",
    "activity_24h",
)
TIMEFRAMES: tuple[str, ...] = ("24h", "7d", "30d")
LEADERBOARD_TYPES: tuple[str, ...] = ("team", "submission")


@dataclass
class RollupQuerySchema(BaseSchema[None]):
    """
    活动汇总查询：
    - status 叠加在角色范围之上
    - sort_by/order 在指标算完后排序，limit 在排序后截断
    """
    auto_validate: ClassVar[bool] = True
    ALIASES: ClassVar[dict[str, str]] = {"sortBy": "sort_by"}

    status: Optional[str] = None
    sort_by: str = "start_date"
    order: str = "desc"
    limit: Optional[int] = None

    def validate(self) -> None:
        self.sort_by = self.sort_by or "start_date"
        self.order = (self.order or "desc").lower()
        if self.sort_by not in ROLLUP_SORT_FIELDS:
            raise ValidationError(message="排序字段不合法")
        if self.order not in ("asc", "desc"):
            raise ValidationError(message="排序方向只能是 asc 或 desc")
        self.limit = parse_positive_int(self.limit, field_name="limit", required=False)
        self.status = self.status or None


@dataclass
class TrendQuerySchema(BaseSchema[None]):
    """趋势查询：24h 按小时、7d 按星期、30d 按日期分桶"""
    auto_validate: ClassVar[bool] = True

    timeframe: str = "7d"
    event_id: Optional[int] = None

    def validate(self) -> None:
        if self.timeframe not in TIMEFRAMES:
            raise ValidationError(message="timeframe 只能是 24h / 7d / 30d")
        self.event_id = parse_positive_int(self.event_id, field_name="event_id", required=False)


@dataclass
class LeaderboardQuerySchema(BaseSchema[None]):
    auto_validate: ClassVar[bool] = True

    event_id: Optional[int] = None
    type: str = "team"
    limit: Optional[int] = None

    def validate(self) -> None:
        self.event_id = parse_positive_int(self.event_id, field_name="event_id")
        if self.type not in LEADERBOARD_TYPES:
            raise ValidationError(message="排行榜类型只能是 team 或 submission")
        self.limit = parse_positive_int(self.limit, field_name="limit", required=False)


@dataclass
class SuggestionQuerySchema(BaseSchema[None]):
    auto_validate: ClassVar[bool] = True

    event_id: Optional[int] = None
    limit: Optional[int] = 5

    def validate(self) -> None:
        self.event_id = parse_positive_int(self.event_id, field_name="event_id", required=False)
        self.limit = parse_positive_int(self.limit, field_name="limit", required=False) or 5
