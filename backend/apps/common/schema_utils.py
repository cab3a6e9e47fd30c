# apps/common/schema_utils.py
from __future__ import annotations

from rest_framework import serializers
from drf_spectacular.utils import inline_serializer, OpenApiParameter


_CACHE: dict[str, type[serializers.Serializer]] = {}


def _cached(name: str, builder):
    """简单缓存，避免重复生成同名 inline serializer 导致冲突"""
    if name not in _CACHE:
        _CACHE[name] = builder()
    return _CACHE[name]


def api_response_schema(
    name: str,
    data_fields: dict,
    *,
    extra_serializer: serializers.Field | None = None,
) -> serializers.Serializer:
    """
    构造统一响应 Schema：code/message/data/extra
    - name 用于生成唯一的响应/数据命名
    - data_fields 为 data 内部的字段定义
    """
    normalized_fields = {}
    for key, value in data_fields.items():
        if isinstance(value, type) and issubclass(value, serializers.Serializer):
            normalized_fields[key] = value()
        else:
            normalized_fields[key] = value
    data_serializer = inline_serializer(name=f"{name}Data", fields=normalized_fields)
    return inline_serializer(
        name=f"{name}Response",
        fields={
            "code": serializers.IntegerField(help_text="业务状态码，0 表示成功"),
            "message": serializers.CharField(help_text="提示信息"),
            "data": data_serializer,
            "extra": extra_serializer
            if extra_serializer
            else serializers.DictField(required=False, allow_null=True, help_text="附加信息"),
        },
    )


def pagination_meta_serializer():
    return _cached(
        "PaginationMeta",
        lambda: inline_serializer(
            name="PaginationMeta",
            fields={
                "page": serializers.IntegerField(help_text="当前页码（从 1 开始）"),
                "page_size": serializers.IntegerField(help_text="每页条数"),
                "total": serializers.IntegerField(help_text="总条数"),
                "total_pages": serializers.IntegerField(help_text="总页数", required=False, allow_null=True),
                "has_next": serializers.BooleanField(help_text="是否有下一页"),
                "has_previous": serializers.BooleanField(help_text="是否有上一页"),
            },
        ),
    )


def pagination_parameters() -> list[OpenApiParameter]:
    """通用分页查询参数"""
    return [
        OpenApiParameter(name="page", location=OpenApiParameter.QUERY, description="页码（从 1 开始）", required=False, type=int),
        OpenApiParameter(name="page_size", location=OpenApiParameter.QUERY, description="每页条数", required=False, type=int),
    ]


def list_response(
    name: str,
    item_serializer: serializers.Serializer,
    extra_fields: dict | None = None,
    *,
    paginated: bool = False,
):
    """列表响应：data.items 为数组，可选附加字段，支持分页元信息"""
    items_field = (
        item_serializer(many=True)
        if isinstance(item_serializer, type) and issubclass(item_serializer, serializers.Serializer)
        else item_serializer
    )
    fields = {"items": items_field}
    if extra_fields:
        fields.update(extra_fields)
    return api_response_schema(
        name,
        fields,
        extra_serializer=pagination_meta_serializer() if paginated else None,
    )


def paginated_list_response(name: str, item_serializer) -> serializers.Serializer:
    """分页列表响应：data 直接为数组，分页信息在 extra"""
    items_field = (
        item_serializer(many=True)
        if isinstance(item_serializer, type) and issubclass(item_serializer, serializers.Serializer)
        else serializers.ListField(child=item_serializer)
    )
    return inline_serializer(
        name=f"{name}PageResponse",
        fields={
            "code": serializers.IntegerField(help_text="业务状态码，0 表示成功"),
            "message": serializers.CharField(help_text="提示信息"),
            "data": items_field,
            "extra": pagination_meta_serializer(),
        },
    )


# 常用数据结构
def event_rollup_serializer():
    """活动汇总条目：基础信息 + 指标"""
    return _cached(
        "EventRollup",
        lambda: inline_serializer(
            name="EventRollup",
            fields={
                "id": serializers.IntegerField(),
                "title": serializers.CharField(),
                "status": serializers.CharField(help_text="draft/upcoming/ongoing/completed"),
                "start_date": serializers.DateTimeField(),
                "end_date": serializers.DateTimeField(),
                "metrics": inline_serializer(
                    name="EventRollupMetrics",
                    fields={
                        "registrations": serializers.IntegerField(help_text="报名总数"),
                        "submissions": serializers.IntegerField(help_text="作品总数"),
                        "conversion": serializers.FloatField(help_text="作品/报名 百分比，保留一位小数"),
                        "activity_24h": serializers.IntegerField(help_text="近 24 小时新增报名+作品"),
                    },
                ),
            },
        ),
    )


def leaderboard_entry_serializer():
    """排行榜条目：队伍或作品"""
    return _cached(
        "LeaderboardEntry",
        lambda: inline_serializer(
            name="LeaderboardEntry",
            fields={
                "rank": serializers.IntegerField(help_text="排名（从 1 开始）"),
                "id": serializers.IntegerField(help_text="队伍或作品 ID"),
                "name": serializers.CharField(help_text="队伍名称或作品标题"),
                "team_id": serializers.IntegerField(required=False, allow_null=True),
                "team_name": serializers.CharField(required=False, allow_blank=True),
                "score": serializers.FloatField(),
                "created_at": serializers.DateTimeField(),
            },
        ),
    )


def evaluation_serializer():
    """评审记录"""
    return _cached(
        "Evaluation",
        lambda: inline_serializer(
            name="Evaluation",
            fields={
                "id": serializers.IntegerField(),
                "event_id": serializers.IntegerField(),
                "team_id": serializers.IntegerField(),
                "team_name": serializers.CharField(),
                "judge_id": serializers.IntegerField(),
                "judge_name": serializers.CharField(),
                "scores": serializers.DictField(child=serializers.FloatField(allow_null=True), help_text="四项子评分"),
                "comments": serializers.CharField(allow_blank=True),
                "status": serializers.CharField(help_text="pending/complete"),
                "created_at": serializers.DateTimeField(),
                "updated_at": serializers.DateTimeField(),
            },
        ),
    )


def notification_serializer():
    """站内通知"""
    return _cached(
        "Notification",
        lambda: inline_serializer(
            name="Notification",
            fields={
                "id": serializers.IntegerField(),
                "title": serializers.CharField(),
                "message": serializers.CharField(allow_blank=True),
                "type": serializers.CharField(help_text="info/update/alert"),
                "link": serializers.CharField(allow_blank=True),
                "event_id": serializers.IntegerField(allow_null=True),
                "team_id": serializers.IntegerField(allow_null=True),
                "created_at": serializers.DateTimeField(),
                "read": serializers.BooleanField(),
            },
        ),
    )
