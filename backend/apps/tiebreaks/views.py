from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common.exceptions import NotFoundError
from apps.common.permissions import IsAdmin, IsAdminOrReadOnly, IsAuthenticated, IsJudge
from apps.common.response import created, success

from .repo import TieBreakingRepo
from .schemas import TieBreakCreateSchema, TieBreakResolveSchema, TieBreakVoteSchema
from .services import TieBreakCreateService, TieBreakResolveService, TieBreakVoteService, serialize_tiebreak


class TieBreakListCreateView(APIView):
    """平局裁决列表与发起（发起仅管理员）"""

    permission_classes = [IsAdminOrReadOnly]
    repo = TieBreakingRepo()

    @extend_schema(summary="平局裁决列表", responses=OpenApiTypes.OBJECT, tags=["tiebreaks"])
    def get(self, request: Request) -> Response:
        qs = self.repo.filter()
        status = request.query_params.get("status")
        if status:
            qs = qs.filter(status=status)
        return success({"items": [serialize_tiebreak(item) for item in qs[:200]]})

    @extend_schema(summary="发起平局裁决", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT,
                   tags=["tiebreaks"])
    def post(self, request: Request) -> Response:
        schema = TieBreakCreateSchema.from_dict(request.data)
        tiebreak = TieBreakCreateService().execute(request.user, schema)
        return created(serialize_tiebreak(tiebreak), message="平局裁决已发起")


class TieBreakDetailView(APIView):
    permission_classes = [IsAuthenticated]
    repo = TieBreakingRepo()

    @extend_schema(summary="平局裁决详情", responses=OpenApiTypes.OBJECT, tags=["tiebreaks"])
    def get(self, request: Request, tiebreak_id: int) -> Response:
        tiebreak = self.repo.get_or_none(pk=tiebreak_id)
        if tiebreak is None:
            raise NotFoundError(message="平局裁决不存在")
        return success(serialize_tiebreak(tiebreak))


class TieBreakVoteView(APIView):
    """评委投票"""

    permission_classes = [IsJudge]

    @extend_schema(summary="平局裁决投票", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT,
                   tags=["tiebreaks"])
    def post(self, request: Request, tiebreak_id: int) -> Response:
        schema = TieBreakVoteSchema.from_dict(request.data)
        vote = TieBreakVoteService().execute(tiebreak_id, request.user, schema)
        return created(
            {"tiebreak_id": vote.tiebreak_id, "submission_id": vote.submission_id, "voted_at": vote.voted_at},
            message="投票成功",
        )


class TieBreakResolveView(APIView):
    """管理员裁决"""

    permission_classes = [IsAdmin]

    @extend_schema(summary="平局裁决结果", request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT,
                   tags=["tiebreaks"])
    def post(self, request: Request, tiebreak_id: int) -> Response:
        schema = TieBreakResolveSchema.from_dict(request.data)
        tiebreak = TieBreakResolveService().execute(tiebreak_id, schema, actor=request.user)
        return success(serialize_tiebreak(tiebreak), message="平局裁决已完成")
