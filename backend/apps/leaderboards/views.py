from __future__ import annotations

from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes
from rest_framework import serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common.exceptions import NotFoundError
from apps.common.permissions import IsAdmin, IsAdminOrReadOnly, IsAuthenticated, is_admin_user
from apps.common.response import created, success
from apps.common.schema_utils import api_response_schema, list_response

from .repo import QuotaRepo
from .schemas import AdvanceSchema, LeaderboardQuerySchema, QuotaUpsertSchema
from .services import (
    AdvancementService,
    LeaderboardQueryService,
    QuotaUpsertService,
    serialize_quota,
)

QUOTA_FIELDS = {
    "id": serializers.IntegerField(),
    "year": serializers.IntegerField(),
    "level": serializers.CharField(),
    "quota": serializers.IntegerField(),
    "updated_at": serializers.DateTimeField(),
}


class QuotaListCreateView(APIView):
    """晋级配额：登录可查看，管理员可设置"""

    permission_classes = [IsAdminOrReadOnly]
    repo = QuotaRepo()
    service = QuotaUpsertService()

    @extend_schema(
        summary="晋级配额列表",
        responses=list_response("QuotaList", QUOTA_FIELDS),
        parameters=[OpenApiParameter(name="year", location=OpenApiParameter.QUERY, required=False, type=int)],
        tags=["leaderboards"],
    )
    def get(self, request: Request) -> Response:
        qs = self.repo.filter()
        year = request.query_params.get("year")
        if year and str(year).isdigit():
            qs = qs.filter(year=int(year))
        return success({"items": [serialize_quota(item) for item in qs]})

    @extend_schema(
        summary="设置晋级配额",
        request=OpenApiTypes.OBJECT,
        responses=api_response_schema("QuotaUpsert", QUOTA_FIELDS),
        tags=["leaderboards"],
    )
    def post(self, request: Request) -> Response:
        schema = QuotaUpsertSchema.from_dict(request.data)
        quota = self.service.execute(request.user, schema)
        return created(serialize_quota(quota), message="配额已保存")


class LeaderboardView(APIView):
    """
    排行榜查询：
    - 未定榜时按需重建，已定榜直接读取
    - 管理员始终查看实时榜单，其他用户在冻结期间看到快照
    """

    permission_classes = [IsAuthenticated]
    service = LeaderboardQueryService()

    @extend_schema(
        summary="排行榜",
        parameters=[
            OpenApiParameter(name="year", location=OpenApiParameter.QUERY, required=True, type=int),
            OpenApiParameter(name="area_of_focus", location=OpenApiParameter.QUERY, required=True, type=str),
            OpenApiParameter(name="level", location=OpenApiParameter.QUERY, required=True, type=str,
                             enum=["Council", "Regional", "National"]),
            OpenApiParameter(name="location_key", location=OpenApiParameter.QUERY, required=False, type=str,
                             description="Council: region::council；Regional: region；National 可省略"),
        ],
        responses=OpenApiTypes.OBJECT,
        tags=["leaderboards"],
    )
    def get(self, request: Request) -> Response:
        schema = LeaderboardQuerySchema.from_dict(request.query_params)
        location_key = schema.location_key or "national"
        payload = self.service.execute(
            year=schema.year,
            area_of_focus=schema.area_of_focus,
            level=schema.level,
            location_key=location_key,
            live=is_admin_user(request.user),
        )
        if payload is None:
            raise NotFoundError(message="该范围暂无排行榜")
        return success(payload)


class AdvanceView(APIView):
    """手动晋级：对某层级地区范围执行一次晋级事务"""

    permission_classes = [IsAdmin]

    @extend_schema(
        summary="手动晋级",
        request=OpenApiTypes.OBJECT,
        responses=api_response_schema(
            "Advance",
            {
                "year": serializers.IntegerField(),
                "level": serializers.CharField(),
                "next_level": serializers.CharField(),
                "promoted": serializers.IntegerField(),
                "eliminated": serializers.IntegerField(),
                "groups": serializers.ListField(child=serializers.DictField()),
            },
        ),
        tags=["leaderboards"],
    )
    def post(self, request: Request) -> Response:
        schema = AdvanceSchema.from_dict(request.data)
        result = AdvancementService().execute(
            year=schema.year,
            level=schema.level,
            region=schema.region,
            council=schema.council,
            actor=request.user,
        )
        return success(result.to_dict(), message="晋级已完成")
