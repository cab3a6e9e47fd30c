from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, inline_serializer
from rest_framework import serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common.broadcaster import ChannelLayerBroadcaster, dispatch_after_commit
from apps.common.exceptions import ValidationError
from apps.common.pagination import StandardPagination
from apps.common.permissions import IsAuthenticated, IsOrganizer
from apps.common.response import created, success
from apps.common.schema_utils import (
    api_response_schema,
    notification_serializer,
    paginated_list_response,
    pagination_parameters,
)

from .repo import NotificationRepo
from .schemas import EventBroadcastSchema
from .services import (
    EventBroadcastService,
    NotificationMarkAllReadService,
    NotificationMarkReadService,
    serialize_notification,
)


class NotificationListView(APIView):
    """通知列表：默认只看未读，status=all 查看全部"""

    permission_classes = [IsAuthenticated]
    repo = NotificationRepo()

    @extend_schema(
        summary="通知列表",
        operation_id="notification_list",
        request=None,
        responses=paginated_list_response("NotificationList", notification_serializer()),
        parameters=[
            OpenApiParameter(
                name="status",
                location=OpenApiParameter.QUERY,
                required=False,
                description="筛选状态：unread/all（默认 unread）",
                type=str,
                enum=["unread", "all"],
            ),
            *pagination_parameters(),
        ],
    )
    def get(self, request: Request) -> Response:
        status_filter = request.query_params.get("status", "unread")
        if status_filter not in ("unread", "all"):
            raise ValidationError(message="status 只能是 unread 或 all")
        queryset = self.repo.for_recipient(request.user, unread_only=status_filter == "unread")
        paginator = StandardPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        read_ids = self.repo.read_ids(request.user, [n.id for n in page])
        items = [serialize_notification(n, read=n.id in read_ids) for n in page]
        return paginator.get_paginated_response(items)


class NotificationUnreadCountView(APIView):
    """未读计数"""

    permission_classes = [IsAuthenticated]
    repo = NotificationRepo()

    @extend_schema(
        summary="未读通知数量",
        operation_id="notification_unread_count",
        request=None,
        responses=api_response_schema(
            "NotificationUnreadCount",
            {
                "unread": serializers.IntegerField(help_text="未读数量"),
            },
        ),
    )
    def get(self, request: Request) -> Response:
        return success({"unread": self.repo.unread_count(request.user)})


class NotificationMarkReadView(APIView):
    """标记单条通知已读"""

    permission_classes = [IsAuthenticated]
    service = NotificationMarkReadService()

    @extend_schema(
        summary="标记通知已读",
        operation_id="notification_mark_read",
        request=None,
        responses=api_response_schema("NotificationMarkRead", {"notification": notification_serializer()}),
    )
    def post(self, request: Request, notification_id: int) -> Response:
        notification = self.service.execute(request.user, notification_id)
        return success({"notification": serialize_notification(notification, read=True)})


class NotificationMarkAllReadView(APIView):
    """标记全部通知为已读"""

    permission_classes = [IsAuthenticated]
    service = NotificationMarkAllReadService()

    @extend_schema(
        summary="全部标记为已读",
        operation_id="notification_mark_all_read",
        request=None,
        responses=api_response_schema(
            "NotificationMarkAllRead",
            {"updated": serializers.IntegerField(help_text="被标记的通知数量")},
        ),
    )
    def post(self, request: Request) -> Response:
        updated = self.service.execute(request.user)
        return success({"updated": updated}, message="已标记为已读")


class EventBroadcastView(APIView):
    """主办方向活动相关用户群发通知"""

    permission_classes = [IsOrganizer]
    broadcaster = ChannelLayerBroadcaster()

    @extend_schema(
        summary="活动群发通知",
        operation_id="notification_event_broadcast",
        request=inline_serializer(
            name="EventBroadcastRequest",
            fields={
                "title": serializers.CharField(),
                "message": serializers.CharField(required=False, allow_blank=True),
                "type": serializers.ChoiceField(choices=["info", "update", "alert"], required=False),
                "link": serializers.CharField(required=False, allow_blank=True),
                "team_ids": serializers.ListField(child=serializers.IntegerField(), required=False),
                "user_ids": serializers.ListField(child=serializers.IntegerField(), required=False),
            },
        ),
        responses=api_response_schema(
            "EventBroadcast",
            {
                "created": serializers.BooleanField(help_text="false 表示没有接收人，未创建通知"),
                "recipients": serializers.IntegerField(),
                "notification": notification_serializer(),
            },
        ),
    )
    def post(self, request: Request, event_id: int) -> Response:
        data = request.data
        schema = EventBroadcastSchema.from_dict(
            {
                "title": data.get("title"),
                "message": data.get("message") or "",
                "type": data.get("type") or "info",
                "link": data.get("link") or "",
                "team_ids": data.get("team_ids", data.get("teamIds")) or [],
                "user_ids": data.get("user_ids", data.get("userIds")) or [],
            }
        )
        result = EventBroadcastService().execute(request.user, event_id, schema)
        if result.instance is None:
            return success({"created": False, "recipients": 0, "notification": None}, message="没有可通知的用户")
        dispatch_after_commit(result.events, self.broadcaster)
        recipients = len(result.events[0].recipient_ids) if result.events else 0
        return created(
            {
                "created": True,
                "recipients": recipients,
                "notification": serialize_notification(result.instance, read=False),
            },
            message="通知已发送",
        )
