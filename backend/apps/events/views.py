from __future__ import annotations

from drf_spectacular.utils import extend_schema, inline_serializer
from rest_framework import serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common import response
from apps.common.broadcaster import ChannelLayerBroadcaster, dispatch_after_commit
from apps.common.pagination import StandardPagination
from apps.common.permissions import IsAuthenticated, IsJudge, IsOrganizer, IsOrganizerOrJudge
from apps.common.schema_utils import api_response_schema, paginated_list_response, pagination_parameters

from .repo import JudgeAssignmentRepo
from .schemas import JudgeAssignSchema, RegistrationCreateSchema, SubmissionScoreSchema
from .services import (
    JudgeAssignService,
    RegistrationCreateService,
    SubmissionScoreService,
    serialize_event,
    serialize_registration,
    serialize_submission,
)

# 视图层：报名、作品打分、评委分配

_REGISTRATION_FIELDS = (
    "registration_type",
    "first_name",
    "last_name",
    "personal_email",
    "team_name",
    "desired_skills",
    "track",
    "members",
)

_event_summary = inline_serializer(
    name="EventSummary",
    fields={
        "id": serializers.IntegerField(),
        "title": serializers.CharField(),
        "status": serializers.CharField(),
        "start_date": serializers.DateTimeField(),
        "end_date": serializers.DateTimeField(),
        "organizer_id": serializers.IntegerField(),
    },
)


class RegistrationCreateView(APIView):
    """活动报名"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="活动报名",
        request=inline_serializer(
            name="RegistrationCreateRequest",
            fields={
                "registration_type": serializers.ChoiceField(choices=["individual", "team"]),
                "first_name": serializers.CharField(),
                "last_name": serializers.CharField(required=False, allow_blank=True),
                "personal_email": serializers.EmailField(),
                "team_name": serializers.CharField(required=False, allow_blank=True),
                "desired_skills": serializers.ListField(child=serializers.CharField(), required=False),
                "track": serializers.CharField(required=False, allow_blank=True),
                "members": serializers.ListField(child=serializers.DictField(), required=False),
            },
        ),
        responses=api_response_schema("RegistrationCreate", {"registration": serializers.DictField()}),
    )
    def post(self, request: Request, event_id: int) -> Response:
        payload = {key: request.data[key] for key in _REGISTRATION_FIELDS if key in request.data}
        schema = RegistrationCreateSchema.from_dict(payload)
        registration = RegistrationCreateService().execute(event_id, schema)
        return response.created({"registration": serialize_registration(registration)}, message="报名成功")


class SubmissionScoreView(APIView):
    """作品打分"""

    permission_classes = [IsOrganizerOrJudge]
    broadcaster = ChannelLayerBroadcaster()

    @extend_schema(
        summary="作品打分",
        request=inline_serializer(
            name="SubmissionScoreRequest",
            fields={"score": serializers.FloatField(min_value=0, max_value=100)},
        ),
        responses=api_response_schema("SubmissionScore", {"submission": serializers.DictField()}),
    )
    def post(self, request: Request, submission_id: int) -> Response:
        schema = SubmissionScoreSchema.from_dict({"score": request.data.get("score")})
        result = SubmissionScoreService().execute(request.user, submission_id, schema)
        dispatch_after_commit(result.events, self.broadcaster)
        return response.success({"submission": serialize_submission(result.instance)}, message="评分已保存")


class JudgeAssignView(APIView):
    """主办方为活动分配评委"""

    permission_classes = [IsOrganizer]

    @extend_schema(
        summary="分配评委",
        request=inline_serializer(
            name="JudgeAssignRequest",
            fields={"event_id": serializers.IntegerField(), "judge_id": serializers.IntegerField()},
        ),
        responses=api_response_schema(
            "JudgeAssign",
            {
                "id": serializers.IntegerField(),
                "event_id": serializers.IntegerField(),
                "judge_id": serializers.IntegerField(),
                "created": serializers.BooleanField(help_text="false 表示此前已分配"),
            },
        ),
    )
    def post(self, request: Request) -> Response:
        data = request.data
        schema = JudgeAssignSchema.from_dict(
            {
                "event_id": data.get("event_id", data.get("eventId")),
                "judge_id": data.get("judge_id", data.get("judgeId")),
            }
        )
        assignment, created = JudgeAssignService().execute(request.user, schema)
        payload = {
            "id": assignment.id,
            "event_id": assignment.event_id,
            "judge_id": assignment.judge_id,
            "created": created,
        }
        if created:
            return response.created(payload, message="评委已分配")
        return response.success(payload, message="评委已在该活动中")


class JudgeMyEventsView(APIView):
    """评委查看自己被分配的活动"""

    permission_classes = [IsJudge]

    @extend_schema(
        summary="我评审的活动",
        request=None,
        parameters=pagination_parameters(),
        responses=paginated_list_response("JudgeEventList", _event_summary),
    )
    def get(self, request: Request) -> Response:
        queryset = JudgeAssignmentRepo().events_for_judge(request.user.id)
        paginator = StandardPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response([serialize_event(e) for e in page])
