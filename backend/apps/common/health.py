from __future__ import annotations

from django.db import connection
from django.db.utils import DatabaseError
from drf_spectacular.utils import extend_schema
from rest_framework import serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common import response
from apps.common.infra import redis_client
from apps.common.permissions import AllowAny
from apps.common.schema_utils import api_response_schema


class HealthCheckView(APIView):
    """
    健康检查接口
    - 供负载均衡/监控探活：数据库执行一次轻量查询，Redis 仅报告是否启用
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="健康检查",
        request=None,
        responses=api_response_schema(
            "HealthCheck",
            {
                "status": serializers.CharField(),
                "database": serializers.CharField(),
                "redis_enabled": serializers.BooleanField(),
            },
        ),
    )
    def get(self, request: Request) -> Response:
        _ = request
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            database = "ok"
        except DatabaseError:
            database = "unavailable"
        return response.success(
            {
                "status": "ok" if database == "ok" else "degraded",
                "database": database,
                "redis_enabled": redis_client.is_enabled(),
            }
        )
