from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common.exceptions import NotFoundError
from apps.common.levels import Level
from apps.common.permissions import IsAdmin, IsAdminOrReadOnly
from apps.common.response import created, success
from apps.common.schema_utils import api_response_schema, list_response, round_fields

from .models import CompetitionRound
from .repo import CompetitionRoundRepo
from .schemas import (
    RoundCreateSchema,
    RoundExtendSchema,
    RoundReminderSchema,
    RoundUpdateSchema,
    RoundVisibilitySchema,
)
from .services import (
    JudgeProgressService,
    RoundActivateService,
    RoundCloseService,
    RoundCreateService,
    RoundExtendService,
    RoundJudgeReminderService,
    RoundLeaderboardVisibilityService,
    RoundLocationReminderService,
    RoundUpdateService,
    serialize_round,
)

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _parse_limit(raw) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return max(1, min(value, MAX_LIMIT))


class RoundListCreateView(APIView):
    """轮次列表（登录可查看，可按年度/层级/状态过滤）与创建（仅管理员）"""

    permission_classes = [IsAdminOrReadOnly]
    repo = CompetitionRoundRepo()

    @extend_schema(
        summary="轮次列表",
        parameters=[
            OpenApiParameter(name="year", location=OpenApiParameter.QUERY, required=False, type=int),
            OpenApiParameter(name="level", location=OpenApiParameter.QUERY, required=False, type=str,
                             enum=[str(item) for item in Level]),
            OpenApiParameter(name="status", location=OpenApiParameter.QUERY, required=False, type=str,
                             enum=list(CompetitionRound.Status.values)),
            OpenApiParameter(name="limit", location=OpenApiParameter.QUERY, required=False, type=int),
        ],
        responses=list_response("RoundList", round_fields()),
        tags=["rounds"],
    )
    def get(self, request: Request) -> Response:
        params = request.query_params
        qs = self.repo.filter()
        year = params.get("year")
        if year and str(year).isdigit():
            qs = qs.filter(year=int(year))
        if params.get("level"):
            qs = qs.filter(level=params["level"])
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        items = [serialize_round(item) for item in qs[:_parse_limit(params.get("limit"))]]
        return success({"items": items})

    @extend_schema(
        summary="创建轮次",
        request=OpenApiTypes.OBJECT,
        responses=api_response_schema("RoundCreate", round_fields()),
        tags=["rounds"],
    )
    def post(self, request: Request) -> Response:
        schema = RoundCreateSchema.from_dict(request.data)
        round_obj = RoundCreateService().execute(request.user, schema)
        return created(serialize_round(round_obj), message="轮次已创建")


class RoundDetailView(APIView):
    """轮次详情（登录可查看）与修改（仅管理员，已结束/已关闭的轮次不可修改）"""

    permission_classes = [IsAdminOrReadOnly]
    repo = CompetitionRoundRepo()

    @extend_schema(
        summary="轮次详情",
        responses=api_response_schema("RoundDetail", round_fields()),
        tags=["rounds"],
    )
    def get(self, request: Request, round_id: int) -> Response:
        round_obj = self.repo.get_or_none(pk=round_id)
        if round_obj is None:
            raise NotFoundError(message="轮次不存在")
        return success(serialize_round(round_obj))

    @extend_schema(
        summary="修改轮次",
        request=OpenApiTypes.OBJECT,
        responses=api_response_schema("RoundUpdate", round_fields()),
        tags=["rounds"],
    )
    def put(self, request: Request, round_id: int) -> Response:
        schema = RoundUpdateSchema.from_dict(request.data)
        round_obj = RoundUpdateService().execute(round_id, schema, actor=request.user)
        return success(serialize_round(round_obj), message="轮次已更新")


class RoundActivateView(APIView):
    """激活轮次：pending → active"""

    permission_classes = [IsAdmin]

    @extend_schema(
        summary="激活轮次",
        request=None,
        responses=api_response_schema("RoundActivate", round_fields()),
        tags=["rounds"],
    )
    def post(self, request: Request, round_id: int) -> Response:
        round_obj = RoundActivateService().execute(round_id, actor=request.user)
        return success(serialize_round(round_obj), message="轮次已激活")


class RoundExtendView(APIView):
    """延期：extra_ms 为延长的毫秒数"""

    permission_classes = [IsAdmin]

    @extend_schema(
        summary="轮次延期",
        request=OpenApiTypes.OBJECT,
        responses=api_response_schema("RoundExtend", round_fields()),
        tags=["rounds"],
    )
    def post(self, request: Request, round_id: int) -> Response:
        schema = RoundExtendSchema.from_dict(request.data)
        round_obj = RoundExtendService().execute(round_id, schema.extra, actor=request.user)
        return success(serialize_round(round_obj), message="轮次已延期")


class RoundCloseView(APIView):
    """
    手动关闭轮次
    - 等待评委完成的轮次在门禁未通过时返回业务错误，extra 中给出待评数量与原因
    """

    permission_classes = [IsAdmin]

    @extend_schema(
        summary="关闭轮次",
        request=None,
        responses=api_response_schema(
            "RoundClose",
            {
                "promoted": serializers.IntegerField(),
                "eliminated": serializers.IntegerField(),
                "next_level": serializers.CharField(allow_null=True),
                "total_submissions": serializers.IntegerField(),
                "total_judges": serializers.IntegerField(),
                "total_evaluations": serializers.IntegerField(),
                "average_score": serializers.FloatField(),
                "finalized_leaderboards": serializers.IntegerField(),
            },
        ),
        tags=["rounds"],
    )
    def post(self, request: Request, round_id: int) -> Response:
        stats = RoundCloseService().execute(round_id, actor=request.user, manual=True)
        return success(stats, message="轮次已关闭")


class JudgeProgressView(APIView):
    """评审进度：每位评委的完成情况与整体门禁状态"""

    permission_classes = [IsAdmin]

    @extend_schema(summary="评审进度", responses=OpenApiTypes.OBJECT, tags=["rounds"])
    def get(self, request: Request, round_id: int) -> Response:
        return success(JudgeProgressService().execute(round_id))


class RoundVisibilityView(APIView):
    """排行榜可见性切换：live / frozen"""

    permission_classes = [IsAdmin]

    @extend_schema(
        summary="排行榜可见性",
        request=OpenApiTypes.OBJECT,
        responses=api_response_schema("RoundVisibility", round_fields()),
        tags=["rounds"],
    )
    def post(self, request: Request, round_id: int) -> Response:
        schema = RoundVisibilitySchema.from_dict(request.data)
        round_obj = RoundLeaderboardVisibilityService().execute(round_id, schema, actor=request.user)
        return success(serialize_round(round_obj), message="排行榜可见性已更新")


REMINDER_RESULT_FIELDS = {
    "sent": serializers.IntegerField(help_text="本次发送的提醒数量"),
    "judge_ids": serializers.ListField(child=serializers.IntegerField()),
}


class RoundJudgeReminderView(APIView):
    """手动提醒单个评委，message 为提醒内容"""

    permission_classes = [IsAdmin]

    @extend_schema(
        summary="提醒评委",
        request=OpenApiTypes.OBJECT,
        responses=api_response_schema("RoundJudgeReminder", REMINDER_RESULT_FIELDS),
        tags=["rounds"],
    )
    def post(self, request: Request, round_id: int, judge_id: int) -> Response:
        schema = RoundReminderSchema.from_dict(request.data)
        notif = RoundJudgeReminderService().execute(round_id, judge_id, schema, actor=request.user)
        return success({"sent": 1, "judge_ids": [notif.user_id]}, message="提醒已发送")


class RoundLocationReminderView(APIView):
    """按地区提醒评委：region/council 缺省取轮次范围"""

    permission_classes = [IsAdmin]

    @extend_schema(
        summary="按地区提醒评委",
        request=OpenApiTypes.OBJECT,
        responses=api_response_schema("RoundLocationReminder", REMINDER_RESULT_FIELDS),
        tags=["rounds"],
    )
    def post(self, request: Request, round_id: int) -> Response:
        schema = RoundReminderSchema.from_dict(request.data)
        notifs = RoundLocationReminderService().execute(round_id, schema, actor=request.user)
        judge_ids = [item.user_id for item in notifs]
        return success({"sent": len(judge_ids), "judge_ids": judge_ids}, message="提醒已发送")
