from __future__ import annotations

from typing import Iterable, Optional

from django.db import transaction
from django.utils import timezone

from apps.accounts.repo import UserRepo
from apps.common.base.base_service import BaseService
from apps.common.exceptions import (
    DuplicateEvaluationError,
    EvaluationError,
    NotFoundError,
    PermissionDeniedError,
    RoundStateError,
    SubmissionDisqualifiedError,
    ValidationError,
)
from apps.common.infra import redis_client
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.levels import Level, build_location_key, uses_assignment
from apps.common.permissions import ensure_role, is_admin_user
from apps.common.utils.redis_keys import leaderboard_key
from apps.notifications.services import notify_judge_assigned
from apps.rounds.repo import CompetitionRoundRepo

from .models import Evaluation, Submission, SubmissionAssignment
from .repo import EvaluationRepo, SubmissionAssignmentRepo, SubmissionRepo
from .schemas import DisqualifySchema, EvaluationCreateSchema, ManualAssignSchema

# 服务层：分数汇总、评委评分、一对一评审指派与取消资格

logger = get_logger(__name__)


def serialize_submission(submission: Submission) -> dict:
    """作品序列化：排行榜/评审列表共用"""
    return {
        "id": submission.id,
        "teacher_id": submission.teacher_id,
        "teacher_name": submission.teacher_name,
        "school": submission.school,
        "region": submission.region,
        "council": submission.council,
        "year": submission.year,
        "category": submission.category,
        "class_level": submission.class_level,
        "subject": submission.subject,
        "area_of_focus": submission.area_of_focus,
        "level": submission.level,
        "status": submission.status,
        "average_score": submission.average_score,
        "disqualified": submission.disqualified,
        "created_at": submission.created_at,
    }


def serialize_evaluation(evaluation: Evaluation) -> dict:
    return {
        "id": evaluation.id,
        "submission_id": evaluation.submission_id,
        "judge_id": evaluation.judge_id,
        "level": evaluation.level,
        "scores": evaluation.scores,
        "total_score": evaluation.total_score,
        "average_score": evaluation.average_score,
        "comments": evaluation.comments,
        "submitted_at": evaluation.submitted_at,
    }


def serialize_assignment(assignment: SubmissionAssignment) -> dict:
    return {
        "submission_id": assignment.submission_id,
        "judge_id": assignment.judge_id,
        "level": assignment.level,
        "region": assignment.region,
        "council": assignment.council,
        "assigned_at": assignment.assigned_at,
        "judge_notified": assignment.judge_notified,
    }


# ------------------------
# 分数汇总
# ------------------------

def _criteria_total(scores) -> float:
    total = 0.0
    for value in (scores or {}).values():
        try:
            total += float(value)
        except (TypeError, ValueError):
            continue
    return total


def calculate_average_score(evaluations: Iterable[Evaluation]) -> float:
    """
    作品平均分（纯函数）：
    - 无评分返回 0（不进入排名）
    - 存在逐条平均分（> 0）时对逐条平均分求均值
    - 否则按每条评分的分项之和求均值
    """
    items = list(evaluations)
    if not items:
        return 0.0
    if any((item.average_score or 0) > 0 for item in items):
        total = sum(item.average_score or 0 for item in items)
    else:
        total = sum(_criteria_total(item.scores) for item in items)
    return round(total / len(items), 2)


class ScoreAggregatorService(BaseService[float]):
    """
    分数汇总服务：
    - 只统计作品当前层级的评分，晋级前的评分不影响新层级排名
    - 结果缓存在 Submission.average_score，重复计算幂等
    """

    atomic_enabled = False

    def __init__(self, evaluation_repo: EvaluationRepo | None = None, submission_repo: SubmissionRepo | None = None):
        self.evaluation_repo = evaluation_repo or EvaluationRepo()
        self.submission_repo = submission_repo or SubmissionRepo()

    def perform(self, submission: Submission, *, save: bool = True) -> float:
        evaluations = self.evaluation_repo.for_submission(submission, level=submission.level)
        score = calculate_average_score(evaluations)
        if save and score != submission.average_score:
            self.submission_repo.update(submission, {"average_score": score})
        return score


def invalidate_submission_leaderboard_cache(submission: Submission) -> None:
    """作品分数变化后失效所在排行榜缓存（事务提交后执行，避免并发读回填旧数据）"""
    location_key = build_location_key(submission.level, submission.region, submission.council)
    key = leaderboard_key(submission.year, submission.area_of_focus, submission.level, location_key)
    transaction.on_commit(lambda: redis_client.delete(key))


# ------------------------
# 评委评分
# ------------------------

class EvaluationSubmitService(BaseService[Evaluation]):
    """
    评委评分服务：
    - 仅评委可评分；Council/Regional 只有被指派的评委可评分，National 由本层级评委交叉评审
    - 作品所在轮次须为进行中或已结束待关闭（等待评委完成的宽限期）
    - 同一评委对同一作品只能评分一次
    - 写入评分后重算作品平均分，状态推进为 evaluated
    """

    def __init__(
            self,
            submission_repo: SubmissionRepo | None = None,
            evaluation_repo: EvaluationRepo | None = None,
            assignment_repo: SubmissionAssignmentRepo | None = None,
            round_repo: CompetitionRoundRepo | None = None,
    ):
        self.submission_repo = submission_repo or SubmissionRepo()
        self.evaluation_repo = evaluation_repo or EvaluationRepo()
        self.assignment_repo = assignment_repo or SubmissionAssignmentRepo()
        self.round_repo = round_repo or CompetitionRoundRepo()

    def validate(self, judge, submission_id: int, schema: EvaluationCreateSchema) -> None:
        ensure_role(judge, ["judge"], message="仅评委可以评分")

    def perform(self, judge, submission_id: int, schema: EvaluationCreateSchema) -> Evaluation:
        locked = self.submission_repo.lock_by_ids([submission_id])
        if not locked:
            raise NotFoundError(message="作品不存在")
        submission = locked[0]
        if submission.disqualified:
            raise SubmissionDisqualifiedError()
        if submission.status in (Submission.Status.PENDING, Submission.Status.ELIMINATED):
            raise EvaluationError(message="作品当前状态不可评分")

        covering = self.round_repo.covering_round(
            year=submission.year,
            level=submission.level,
            region=submission.region,
            council=submission.council,
        )
        if covering is None:
            raise RoundStateError(message="作品所在层级没有进行中的轮次，暂不能评分")

        if uses_assignment(submission.level):
            assignment = self.assignment_repo.get_or_none(submission=submission, level=submission.level)
            if assignment is None or assignment.judge_id != judge.id:
                raise PermissionDeniedError(message="你未被指派评审该作品")
        elif judge.assigned_level != submission.level:
            raise PermissionDeniedError(message="你不是该层级的评委")

        if self.evaluation_repo.exists(submission=submission, judge=judge):
            raise DuplicateEvaluationError()

        total = round(_criteria_total(schema.scores), 2)
        average = round(total / len(schema.scores), 2) if schema.scores else 0.0
        now = timezone.now()
        evaluation = self.evaluation_repo.create(
            {
                "submission": submission,
                "judge": judge,
                "level": submission.level,
                "scores": schema.scores,
                "total_score": total,
                "average_score": average,
                "comments": schema.comments,
                "submitted_at": now,
                "created_at": now,
            }
        )

        score = ScoreAggregatorService(evaluation_repo=self.evaluation_repo).execute(submission, save=False)
        self.submission_repo.update(submission, {"average_score": score, "status": Submission.Status.EVALUATED})
        invalidate_submission_leaderboard_cache(submission)
        logger.info(
            "评委评分已记录",
            extra=logger_extra(
                {
                    "submission_id": submission.id,
                    "judge_id": judge.id,
                    "level": submission.level,
                    "round_id": covering.id,
                    "average_score": score,
                }
            ),
        )
        return evaluation


# ------------------------
# 评审指派
# ------------------------

class JudgeAssignmentService(BaseService[Optional[SubmissionAssignment]]):
    """
    一对一评审指派（轮询均衡）：
    - 仅 Council/Regional 需要指派；National 返回 None
    - 作品已有当前层级指派时直接返回；晋级后层级变化则改派到新层级评委
    - 在岗评委中选择指派数最少者，数量相同取主键最小者
    - 该范围没有评委时记录警告并返回 None，由管理员稍后手动指派
    """

    def __init__(
            self,
            user_repo: UserRepo | None = None,
            assignment_repo: SubmissionAssignmentRepo | None = None,
    ):
        self.user_repo = user_repo or UserRepo()
        self.assignment_repo = assignment_repo or SubmissionAssignmentRepo()

    def pick_judge(self, submission: Submission):
        judges = list(self.user_repo.judges_for_scope(submission.level, submission.region, submission.council))
        if not judges:
            return None
        loads = self.assignment_repo.load_by_judge(
            level=submission.level,
            region=submission.region,
            council=submission.council,
        )
        return min(judges, key=lambda judge: loads.get(judge.id, 0))

    def perform(self, submission: Submission) -> Optional[SubmissionAssignment]:
        if not uses_assignment(submission.level):
            return None
        existing = self.assignment_repo.get_or_none(submission=submission)
        if existing is not None and existing.level == submission.level:
            return existing

        judge = self.pick_judge(submission)
        if judge is None:
            logger.warning(
                "评审范围内没有在岗评委，跳过自动指派",
                extra=logger_extra(
                    {
                        "submission_id": submission.id,
                        "level": submission.level,
                        "region": submission.region,
                        "council": submission.council,
                    }
                ),
            )
            return None
        return assign_judge(submission, judge, existing=existing, repo=self.assignment_repo)


def assign_judge(
        submission: Submission,
        judge,
        *,
        existing: Optional[SubmissionAssignment] = None,
        repo: SubmissionAssignmentRepo | None = None,
) -> SubmissionAssignment:
    """写入（或改派）指派并通知评委；通知失败只记录日志"""
    repo = repo or SubmissionAssignmentRepo()
    data = {
        "judge": judge,
        "level": submission.level,
        "region": submission.region,
        "council": submission.council if submission.level == Level.COUNCIL else None,
        "assigned_at": timezone.now(),
        "judge_notified": False,
    }
    if existing is not None:
        assignment = repo.update(existing, data)
    else:
        assignment = repo.create({"submission": submission, **data})
    logger.info(
        "评审指派完成",
        extra=logger_extra(
            {
                "submission_id": submission.id,
                "judge_id": judge.id,
                "level": submission.level,
                "reassigned": existing is not None,
            }
        ),
    )
    try:
        with BaseService.atomic():
            notify_judge_assigned(assignment)
            repo.update(assignment, {"judge_notified": True})
    except Exception:
        logger.exception("评审指派通知发送失败", extra=logger_extra({"submission_id": submission.id}))
    return assignment


class ManualAssignService(BaseService[SubmissionAssignment]):
    """管理员手动指派：评委必须是该作品层级与地区的在岗评委"""

    def __init__(
            self,
            submission_repo: SubmissionRepo | None = None,
            user_repo: UserRepo | None = None,
            assignment_repo: SubmissionAssignmentRepo | None = None,
    ):
        self.submission_repo = submission_repo or SubmissionRepo()
        self.user_repo = user_repo or UserRepo()
        self.assignment_repo = assignment_repo or SubmissionAssignmentRepo()

    def perform(self, submission_id: int, schema: ManualAssignSchema) -> SubmissionAssignment:
        submission = self.submission_repo.get_or_none(pk=submission_id)
        if submission is None:
            raise NotFoundError(message="作品不存在")
        if not uses_assignment(submission.level):
            raise ValidationError(message="全国层级由全部评委交叉评审，无需指派")
        judge = (
            self.user_repo.judges_for_scope(submission.level, submission.region, submission.council)
            .filter(pk=schema.judge_id)
            .first()
        )
        if judge is None:
            raise ValidationError(message="评委不在该作品的评审范围内")
        existing = self.assignment_repo.get_or_none(submission=submission)
        return assign_judge(submission, judge, existing=existing, repo=self.assignment_repo)


# ------------------------
# 取消资格
# ------------------------

class SubmissionDisqualifyService(BaseService[Submission]):
    """
    取消参赛资格（永久）：
    - 管理员任意层级可操作；评委仅可在 Council/Regional 对其被指派的作品操作
    """

    def __init__(
            self,
            submission_repo: SubmissionRepo | None = None,
            assignment_repo: SubmissionAssignmentRepo | None = None,
    ):
        self.submission_repo = submission_repo or SubmissionRepo()
        self.assignment_repo = assignment_repo or SubmissionAssignmentRepo()

    def perform(self, actor, submission_id: int, schema: DisqualifySchema) -> Submission:
        locked = self.submission_repo.lock_by_ids([submission_id])
        if not locked:
            raise NotFoundError(message="作品不存在")
        submission = locked[0]
        if submission.disqualified:
            raise SubmissionDisqualifiedError(message="作品已被取消资格")
        if not is_admin_user(actor):
            ensure_role(actor, ["judge"])
            if not uses_assignment(submission.level):
                raise PermissionDeniedError(message="仅 Council/Regional 层级允许评委取消资格")
            if not self.assignment_repo.exists(submission=submission, judge=actor, level=submission.level):
                raise PermissionDeniedError(message="你未被指派评审该作品")
        self.submission_repo.update(
            submission,
            {
                "disqualified": True,
                "disqualification_reason": schema.reason,
                "disqualified_by": actor,
                "disqualified_at": timezone.now(),
            },
        )
        invalidate_submission_leaderboard_cache(submission)
        logger.info(
            "作品已取消资格",
            extra=logger_extra({"submission_id": submission.id, "actor_id": actor.id, "level": submission.level}),
        )
        return submission
