from __future__ import annotations

from django.http import HttpResponse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiResponse, extend_schema, inline_serializer
from rest_framework import serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common import response
from apps.common.broadcaster import ChannelLayerBroadcaster, dispatch_after_commit
from apps.common.pagination import StandardPagination
from apps.common.permissions import IsAuthenticated, IsJudge, IsOrganizerOrJudge
from apps.common.schema_utils import (
    api_response_schema,
    evaluation_serializer,
    paginated_list_response,
    pagination_parameters,
)

from .schemas import EvaluationUpsertSchema
from .services import (
    EvaluationCompleteService,
    EvaluationExportService,
    EvaluationListService,
    EvaluationUpsertService,
    export_filename,
    serialize_evaluation,
)

# 视图层：评审接口，只做参数转换、调用服务与提交后推送


class EvaluationUpsertView(APIView):
    """评委提交/更新评审"""

    permission_classes = [IsJudge]
    broadcaster = ChannelLayerBroadcaster()

    @extend_schema(
        summary="提交评审",
        request=inline_serializer(
            name="EvaluationUpsertRequest",
            fields={
                "event_id": serializers.IntegerField(),
                "team_id": serializers.IntegerField(),
                "scores": serializers.DictField(
                    child=serializers.FloatField(allow_null=True),
                    help_text="innovation/impact/feasibility/presentation，0-10，其余键忽略",
                ),
                "comments": serializers.CharField(required=False, allow_blank=True),
            },
        ),
        responses=api_response_schema("EvaluationUpsert", {"evaluation": evaluation_serializer()}),
    )
    def post(self, request: Request) -> Response:
        data = request.data
        schema = EvaluationUpsertSchema.from_dict(
            {
                "event_id": data.get("event_id", data.get("eventId")),
                "team_id": data.get("team_id", data.get("teamId")),
                "scores": data.get("scores") or {},
                "comments": data.get("comments") or "",
            }
        )
        result = EvaluationUpsertService().execute(request.user, schema)
        dispatch_after_commit(result.events, self.broadcaster)
        return response.success({"evaluation": serialize_evaluation(result.instance)}, message="评审已保存")


class EvaluationCompleteView(APIView):
    """确认评审"""

    permission_classes = [IsOrganizerOrJudge]
    broadcaster = ChannelLayerBroadcaster()

    @extend_schema(
        summary="确认评审",
        request=None,
        responses=api_response_schema("EvaluationComplete", {"evaluation": evaluation_serializer()}),
    )
    def post(self, request: Request, evaluation_id: int) -> Response:
        result = EvaluationCompleteService().execute(request.user, evaluation_id)
        dispatch_after_commit(result.events, self.broadcaster)
        return response.success({"evaluation": serialize_evaluation(result.instance)}, message="评审已确认")


class EventEvaluationListView(APIView):
    """活动评审列表：主办方看全部，评委只看自己的"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="活动评审列表",
        request=None,
        parameters=pagination_parameters(),
        responses=paginated_list_response("EvaluationList", evaluation_serializer()),
    )
    def get(self, request: Request, event_id: int) -> Response:
        queryset = EvaluationListService().execute(request.user, event_id)
        paginator = StandardPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response([serialize_evaluation(e) for e in page])


class EventEvaluationExportView(APIView):
    """导出活动评审 CSV"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="导出活动评审",
        request=None,
        responses={(200, "text/csv"): OpenApiResponse(response=OpenApiTypes.STR, description="CSV 文件")},
    )
    def get(self, request: Request, event_id: int) -> HttpResponse:
        content = EvaluationExportService().execute(request.user, event_id)
        resp = HttpResponse(content, content_type="text/csv; charset=utf-8")
        resp["Content-Disposition"] = f'attachment; filename="{export_filename(event_id)}"'
        return resp
