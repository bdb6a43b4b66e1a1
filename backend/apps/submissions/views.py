from __future__ import annotations

from rest_framework import serializers
from rest_framework.views import APIView
from rest_framework.request import Request
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema
from drf_spectacular.types import OpenApiTypes

from apps.common import response
from apps.common.exceptions import NotFoundError
from apps.common.permissions import IsAdmin, IsAuthenticated, IsJudge, is_admin_user
from apps.common.schema_utils import api_response_schema

from .repo import EvaluationRepo, SubmissionRepo
from .schemas import DisqualifySchema, EvaluationCreateSchema, ManualAssignSchema
from .services import (
    EvaluationSubmitService,
    ManualAssignService,
    SubmissionDisqualifyService,
    serialize_assignment,
    serialize_evaluation,
    serialize_submission,
)


# 视图层：评委评分、手动指派与取消资格，业务规则全部在服务层


class SubmissionDetailView(APIView):
    """作品详情：教师本人、评委与管理员可查看"""

    permission_classes = [IsAuthenticated]
    repo = SubmissionRepo()
    evaluation_repo = EvaluationRepo()

    @extend_schema(responses=OpenApiTypes.OBJECT, tags=["submissions"])
    def get(self, request: Request, submission_id: int) -> Response:
        submission = self.repo.get_or_none(pk=submission_id)
        if submission is None:
            raise NotFoundError(message="作品不存在")
        user = request.user
        if not (is_admin_user(user) or user.role == "judge" or submission.teacher_id == user.id):
            raise NotFoundError(message="作品不存在")
        data = serialize_submission(submission)
        if is_admin_user(user) or user.role == "judge":
            data["evaluations"] = [
                serialize_evaluation(item) for item in self.evaluation_repo.for_submission(submission)
            ]
        return response.success(data)


class EvaluationCreateView(APIView):
    """评委评分：仅被指派的评委（National 为本层级评委）可评分"""

    permission_classes = [IsJudge]
    service = EvaluationSubmitService()

    @extend_schema(
        request=OpenApiTypes.OBJECT,
        responses=api_response_schema(
            "EvaluationCreate",
            {
                "id": serializers.IntegerField(),
                "submission_id": serializers.IntegerField(),
                "level": serializers.CharField(),
                "total_score": serializers.FloatField(),
                "average_score": serializers.FloatField(),
            },
        ),
        tags=["submissions"],
    )
    def post(self, request: Request, submission_id: int) -> Response:
        schema = EvaluationCreateSchema.from_dict(request.data)
        evaluation = self.service.execute(request.user, submission_id, schema)
        return response.created(serialize_evaluation(evaluation), message="评分已提交")


class ManualAssignView(APIView):
    """管理员手动指派评委"""

    permission_classes = [IsAdmin]
    service = ManualAssignService()

    @extend_schema(request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["submissions"])
    def post(self, request: Request, submission_id: int) -> Response:
        schema = ManualAssignSchema.from_dict(request.data)
        assignment = self.service.execute(submission_id, schema)
        return response.success(serialize_assignment(assignment), message="已指派评委")


class SubmissionDisqualifyView(APIView):
    """取消参赛资格：管理员或被指派的评委"""

    permission_classes = [IsAuthenticated]
    service = SubmissionDisqualifyService()

    @extend_schema(request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT, tags=["submissions"])
    def post(self, request: Request, submission_id: int) -> Response:
        schema = DisqualifySchema.from_dict(request.data)
        submission = self.service.execute(request.user, submission_id, schema)
        return response.success(serialize_submission(submission), message="已取消参赛资格")
