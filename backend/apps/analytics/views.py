from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common import response
from apps.common.permissions import AllowAny, IsAuthenticated
from apps.common.schema_utils import api_response_schema, event_rollup_serializer, leaderboard_entry_serializer, list_response
from apps.common.utils.validators import parse_positive_int

from .schemas import (
    LEADERBOARD_TYPES,
    ROLLUP_SORT_FIELDS,
    TIMEFRAMES,
    LeaderboardQuerySchema,
    RollupQuerySchema,
    SuggestionQuerySchema,
    TrendQuerySchema,
)
from .services import (
    DashboardService,
    EventRollupService,
    LeaderboardService,
    SkillDistributionService,
    TeamSuggestionService,
    TrendService,
)

# 视图层：统计只读接口，范围由调用者身份决定


def _query(request: Request, *names: str) -> dict:
    """只取出现过的查询参数，缺省交给 Schema 默认值"""
    return {name: request.query_params.get(name) for name in names if name in request.query_params}


def _degraded_extra(data: dict) -> dict | None:
    return {"degraded": True} if data.get("degraded") else None


_event_id_param = OpenApiParameter(
    name="event_id", location=OpenApiParameter.QUERY, description="活动 ID，缺省为全局", required=False, type=int
)


class EventsOverviewView(APIView):
    """活动汇总：按角色划定范围后计算报名/作品/转化率/24h 活跃"""

    permission_classes = [AllowAny]

    @extend_schema(
        summary="活动汇总",
        request=None,
        parameters=[
            OpenApiParameter(name="status", location=OpenApiParameter.QUERY, required=False, type=str,
                             enum=["draft", "upcoming", "ongoing", "completed"]),
            OpenApiParameter(name="sort_by", location=OpenApiParameter.QUERY, required=False, type=str,
                             enum=list(ROLLUP_SORT_FIELDS)),
            OpenApiParameter(name="order", location=OpenApiParameter.QUERY, required=False, type=str,
                             enum=["asc", "desc"]),
            OpenApiParameter(name="limit", location=OpenApiParameter.QUERY, required=False, type=int),
        ],
        responses=list_response("EventsOverview", event_rollup_serializer()),
    )
    def get(self, request: Request) -> Response:
        schema = RollupQuerySchema.from_dict(_query(request, "status", "sort_by", "sortBy", "order", "limit"))
        items = EventRollupService().execute(request.user, schema)
        return response.success({"items": items})


class DashboardView(APIView):
    """仪表盘汇总：存储故障时返回零值并在 extra 中标记 degraded"""

    permission_classes = [AllowAny]

    @extend_schema(
        summary="仪表盘汇总",
        request=None,
        parameters=[_event_id_param],
        responses=api_response_schema(
            "Dashboard",
            {
                "active_events": serializers.IntegerField(),
                "total_participants": serializers.IntegerField(),
                "total_submissions": serializers.IntegerField(),
                "success_rate": serializers.FloatField(),
                "engagement_rate": serializers.FloatField(),
                "teams_formed": serializers.IntegerField(),
                "degraded": serializers.BooleanField(),
            },
        ),
    )
    def get(self, request: Request) -> Response:
        event_id = parse_positive_int(request.query_params.get("event_id"), field_name="event_id", required=False)
        data = DashboardService().execute(request.user, event_id)
        return response.success(data, extra=_degraded_extra(data))


class TrendsView(APIView):
    """报名趋势"""

    permission_classes = [AllowAny]

    @extend_schema(
        summary="报名趋势",
        request=None,
        parameters=[
            OpenApiParameter(name="timeframe", location=OpenApiParameter.QUERY, required=False, type=str,
                             enum=list(TIMEFRAMES)),
            _event_id_param,
        ],
        responses=api_response_schema(
            "Trends",
            {
                "timeframe": serializers.CharField(),
                "buckets": serializers.ListField(child=serializers.DictField()),
                "total": serializers.IntegerField(),
                "degraded": serializers.BooleanField(),
            },
        ),
    )
    def get(self, request: Request) -> Response:
        schema = TrendQuerySchema.from_dict(_query(request, "timeframe", "event_id"))
        data = TrendService().execute(request.user, schema)
        return response.success(data, extra=_degraded_extra(data))


class LeaderboardView(APIView):
    """排行榜：公开访问，分数以此接口为准，推送只提示刷新"""

    permission_classes = [AllowAny]

    @extend_schema(
        summary="排行榜",
        request=None,
        parameters=[
            OpenApiParameter(name="event_id", location=OpenApiParameter.QUERY, required=True, type=int),
            OpenApiParameter(name="type", location=OpenApiParameter.QUERY, required=False, type=str,
                             enum=list(LEADERBOARD_TYPES)),
            OpenApiParameter(name="limit", location=OpenApiParameter.QUERY, required=False, type=int),
        ],
        responses=list_response("Leaderboard", leaderboard_entry_serializer()),
    )
    def get(self, request: Request) -> Response:
        schema = LeaderboardQuerySchema.from_dict(_query(request, "event_id", "type", "limit"))
        items = LeaderboardService().execute(schema)
        return response.success({"items": items})


class SkillDistributionView(APIView):
    """技能分布"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="技能分布",
        request=None,
        responses=api_response_schema(
            "SkillDistribution", {"categories": serializers.ListField(child=serializers.DictField())}
        ),
    )
    def get(self, request: Request) -> Response:
        return response.success({"categories": SkillDistributionService().execute()})


class TeamSuggestionsView(APIView):
    """组队推荐"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="组队推荐",
        request=None,
        parameters=[
            _event_id_param,
            OpenApiParameter(name="limit", location=OpenApiParameter.QUERY, required=False, type=int),
        ],
        responses=api_response_schema(
            "TeamSuggestions", {"suggestions": serializers.ListField(child=serializers.DictField())}
        ),
    )
    def get(self, request: Request) -> Response:
        schema = SuggestionQuerySchema.from_dict(_query(request, "event_id", "limit"))
        return response.success({"suggestions": TeamSuggestionService().execute(schema)})
