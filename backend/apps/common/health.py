from __future__ import annotations

from django.conf import settings
from django.db import DatabaseError, connection
from drf_spectacular.utils import extend_schema
from rest_framework import serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common import response
from apps.common.infra.logger import get_logger
from apps.common.permissions import AllowAny
from apps.common.schema_utils import api_response_schema

logger = get_logger(__name__)


def _database_ok() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        return True
    except DatabaseError:
        logger.warning("健康检查：数据库不可用", exc_info=True)
        return False


class HealthCheckView(APIView):
    """
    健康检查：探测数据库并报告当前 channel layer 后端
    - 数据库不可用时 status=degraded，仍返回 200，统计接口本身会按降级策略响应
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="健康检查",
        request=None,
        responses=api_response_schema(
            "HealthCheck",
            {
                "status": serializers.CharField(help_text="ok / degraded"),
                "database": serializers.BooleanField(),
                "channel_layer": serializers.CharField(),
            },
        ),
    )
    def get(self, request: Request) -> Response:
        database = _database_ok()
        layer = settings.CHANNEL_LAYERS.get("default", {}).get("BACKEND", "")
        return response.success(
            {
                "status": "ok" if database else "degraded",
                "database": database,
                "channel_layer": layer.rsplit(".", 1)[-1],
            }
        )
