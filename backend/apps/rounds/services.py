from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from django.utils import timezone

from apps.accounts.repo import UserRepo
from apps.common.base.base_service import BaseService
from apps.common.exceptions import (
    ConflictError,
    JudgesIncompleteError,
    NotFoundError,
    RoundStateError,
    ValidationError,
    require,
)
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.levels import get_next_level, uses_assignment
from apps.common.utils.time import timedelta_to_ms
from apps.common.ws_utils import broadcast_round
from apps.leaderboards.services import (
    AdvancementService,
    boards_in_scope,
    finalize_leaderboards,
    serialize_leaderboard,
)
from apps.notifications.models import Notification
from apps.notifications.services import notify_custom_reminder, notify_round_closed
from apps.submissions.models import Submission
from apps.submissions.repo import EvaluationRepo, SubmissionAssignmentRepo, SubmissionRepo

from .models import CompetitionRound
from .repo import CompetitionRoundRepo
from .schemas import RoundCreateSchema, RoundReminderSchema, RoundUpdateSchema, RoundVisibilitySchema

# 服务层：评委完成门禁、轮次生命周期（创建/修改/激活/延期/关闭）、手动提醒与评审进度

logger = get_logger(__name__)

NO_JUDGES_REASON = "no judges assigned"


def serialize_round(round_obj: CompetitionRound, *, now: Optional[datetime] = None) -> dict:
    """轮次序列化：countdown 时长以毫秒输出"""
    now = now or timezone.now()
    return {
        "id": round_obj.id,
        "year": round_obj.year,
        "level": round_obj.level,
        "region": round_obj.region,
        "council": round_obj.council,
        "status": round_obj.status,
        "timing_type": round_obj.timing_type,
        "start_time": round_obj.start_time,
        "end_time": round_obj.end_time,
        "effective_end_time": round_obj.effective_end_time(),
        "countdown_duration_ms": timedelta_to_ms(round_obj.countdown_duration),
        "time_remaining_seconds": round_obj.time_remaining(now),
        "auto_advance": round_obj.auto_advance,
        "wait_for_all_judges": round_obj.wait_for_all_judges,
        "reminder_enabled": round_obj.reminder_enabled,
        "reminder_frequency": round_obj.reminder_frequency,
        "leaderboard_visibility": round_obj.leaderboard_visibility,
        "metadata": round_obj.metadata or {},
        "ended_at": round_obj.ended_at,
        "closed_at": round_obj.closed_at,
        "closed_by": round_obj.closed_by_id,
        "created_at": round_obj.created_at,
    }


def _get_round(repo: CompetitionRoundRepo, round_id) -> CompetitionRound:
    round_obj = repo.get_or_none(pk=round_id)
    if round_obj is None:
        raise NotFoundError(message="轮次不存在")
    return round_obj


# ------------------------
# 评委完成门禁
# ------------------------

@dataclass
class GateResult:
    complete: bool
    pending_count: int = 0
    total_submissions: int = 0
    total_judges: int = 0
    reason: str = ""
    pending_submission_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "complete": self.complete,
            "pending_count": self.pending_count,
            "total_submissions": self.total_submissions,
            "total_judges": self.total_judges,
            "reason": self.reason,
            "pending_submission_ids": self.pending_submission_ids,
        }


class JudgeCompletionGate:
    """
    评委完成门禁（每次调用都重新查询，不做缓存）：
    - 范围内作品：层级/年度/地区匹配、未取消资格、状态不为 pending/eliminated
    - 评委：在岗评委且评审层级、地区与范围精确匹配
    - Council/Regional：每份作品的指派评委须在 since 之后完成评分，无指派视为待评
    - National：每位评委须在 since 之后评完每份作品
    - 范围内有作品但没有评委时永远不通过，原因 "no judges assigned"
    """

    def __init__(
            self,
            user_repo: UserRepo | None = None,
            submission_repo: SubmissionRepo | None = None,
            evaluation_repo: EvaluationRepo | None = None,
            assignment_repo: SubmissionAssignmentRepo | None = None,
    ):
        self.user_repo = user_repo or UserRepo()
        self.submission_repo = submission_repo or SubmissionRepo()
        self.evaluation_repo = evaluation_repo or EvaluationRepo()
        self.assignment_repo = assignment_repo or SubmissionAssignmentRepo()

    def check(
            self,
            *,
            level: str,
            year: int,
            region: Optional[str] = None,
            council: Optional[str] = None,
            since: Optional[datetime] = None,
    ) -> GateResult:
        submission_ids = list(
            self.submission_repo.awaiting_review(year=year, level=level, region=region, council=council)
            .order_by("id")
            .values_list("id", flat=True)
        )
        judge_ids = list(self.user_repo.judges_for_scope(level, region, council).values_list("id", flat=True))
        if not submission_ids:
            return GateResult(complete=True, total_judges=len(judge_ids), reason="no submissions in scope")
        if not judge_ids:
            return GateResult(
                complete=False,
                pending_count=len(submission_ids),
                total_submissions=len(submission_ids),
                reason=NO_JUDGES_REASON,
                pending_submission_ids=submission_ids,
            )

        evaluated = self.evaluation_repo.judge_ids_by_submission(submission_ids, level=level, since=since)
        if uses_assignment(level):
            assigned = self.assignment_repo.judge_by_submission(submission_ids, level=level)
            pending = [
                sid for sid in submission_ids
                if sid not in assigned or assigned[sid] not in evaluated.get(sid, set())
            ]
        else:
            required = set(judge_ids)
            pending = [sid for sid in submission_ids if not required <= evaluated.get(sid, set())]

        return GateResult(
            complete=not pending,
            pending_count=len(pending),
            total_submissions=len(submission_ids),
            total_judges=len(judge_ids),
            reason=f"{len(pending)} submissions awaiting evaluation" if pending else "",
            pending_submission_ids=pending,
        )

    def check_round(self, round_obj: CompetitionRound) -> GateResult:
        return self.check(
            level=round_obj.level,
            year=round_obj.year,
            region=round_obj.region,
            council=round_obj.council,
            since=round_obj.start_time,
        )


class JudgeProgressService(BaseService[dict]):
    """
    评审进度：
    - 每位评委的指派数、已完成数、待评数、完成百分比与待评作品
    - 附带门禁结果作为整体统计
    """

    atomic_enabled = False

    def __init__(
            self,
            round_repo: CompetitionRoundRepo | None = None,
            user_repo: UserRepo | None = None,
            submission_repo: SubmissionRepo | None = None,
            evaluation_repo: EvaluationRepo | None = None,
            assignment_repo: SubmissionAssignmentRepo | None = None,
    ):
        self.round_repo = round_repo or CompetitionRoundRepo()
        self.user_repo = user_repo or UserRepo()
        self.submission_repo = submission_repo or SubmissionRepo()
        self.evaluation_repo = evaluation_repo or EvaluationRepo()
        self.assignment_repo = assignment_repo or SubmissionAssignmentRepo()
        self.gate = JudgeCompletionGate(
            user_repo=self.user_repo,
            submission_repo=self.submission_repo,
            evaluation_repo=self.evaluation_repo,
            assignment_repo=self.assignment_repo,
        )

    def perform(self, round_obj) -> dict:
        if not isinstance(round_obj, CompetitionRound):
            round_obj = _get_round(self.round_repo, round_obj)
        level = round_obj.level
        submission_ids = list(
            self.submission_repo.awaiting_review(
                year=round_obj.year, level=level, region=round_obj.region, council=round_obj.council
            )
            .order_by("id")
            .values_list("id", flat=True)
        )
        judges = list(self.user_repo.judges_for_scope(level, round_obj.region, round_obj.council))
        evaluated = self.evaluation_repo.judge_ids_by_submission(
            submission_ids, level=level, since=round_obj.start_time
        )
        assigned = self.assignment_repo.judge_by_submission(submission_ids, level=level) \
            if uses_assignment(level) else {}

        items = []
        for judge in judges:
            if uses_assignment(level):
                mine = [sid for sid in submission_ids if assigned.get(sid) == judge.id]
            else:
                mine = list(submission_ids)
            done = [sid for sid in mine if judge.id in evaluated.get(sid, set())]
            pending = [sid for sid in mine if sid not in done]
            items.append(
                {
                    "judge_id": judge.id,
                    "judge_name": judge.display_name,
                    "total_assigned": len(mine),
                    "completed": len(done),
                    "pending": len(pending),
                    "percentage": round(len(done) * 100 / len(mine), 2) if mine else 100.0,
                    "pending_submission_ids": pending,
                }
            )

        gate = self.gate.check_round(round_obj)
        return {
            "round_id": round_obj.id,
            "judges": items,
            "overall": gate.to_dict(),
        }


# ------------------------
# 轮次生命周期
# ------------------------

class RoundCreateService(BaseService[CompetitionRound]):
    """创建轮次：同一 (年度, 层级) 下未关闭轮次的范围必须互不重叠，ended 等待门禁的轮次同样占用范围"""

    def __init__(self, repo: CompetitionRoundRepo | None = None):
        self.repo = repo or CompetitionRoundRepo()

    def perform(self, actor, schema: RoundCreateSchema) -> CompetitionRound:
        overlapping = list(
            self.repo.overlapping_scope(
                year=schema.year, level=schema.level, region=schema.region, council=schema.council
            ).values_list("id", flat=True)
        )
        if overlapping:
            raise ConflictError(message="该范围与未关闭的轮次重叠", extra={"round_ids": overlapping})
        round_obj = self.repo.create(
            {
                "year": schema.year,
                "level": schema.level,
                "region": schema.region,
                "council": schema.council,
                "timing_type": schema.timing_type,
                "end_time": schema.end_time,
                "countdown_duration": schema.countdown_duration,
                "auto_advance": schema.auto_advance,
                "wait_for_all_judges": schema.wait_for_all_judges,
                "reminder_enabled": schema.reminder_enabled,
                "reminder_frequency": schema.reminder_frequency,
                "metadata": schema.metadata or {},
                "created_by": actor,
            }
        )
        logger.info(
            "轮次已创建",
            extra=logger_extra(
                {
                    "round_id": round_obj.id,
                    "year": round_obj.year,
                    "level": round_obj.level,
                    "region": round_obj.region,
                    "council": round_obj.council,
                    "timing_type": round_obj.timing_type,
                }
            ),
        )
        return round_obj


class RoundActivateService(BaseService[CompetitionRound]):
    """
    激活轮次：
    - 仅 pending 可激活，范围内至少有一位在岗评委
    - 写入 start_time（未设置时），倒计时轮次据此重算 end_time
    - 记录激活时待评作品快照
    """

    def __init__(
            self,
            repo: CompetitionRoundRepo | None = None,
            user_repo: UserRepo | None = None,
            submission_repo: SubmissionRepo | None = None,
    ):
        self.repo = repo or CompetitionRoundRepo()
        self.user_repo = user_repo or UserRepo()
        self.submission_repo = submission_repo or SubmissionRepo()

    def perform(self, round_id, *, actor=None, now: Optional[datetime] = None) -> CompetitionRound:
        now = now or timezone.now()
        locked = self.repo.lock_by_ids([round_id])
        if not locked:
            raise NotFoundError(message="轮次不存在")
        round_obj = locked[0]
        if round_obj.status != CompetitionRound.Status.PENDING:
            raise RoundStateError(message=f"轮次当前状态为 {round_obj.status}，只有未开始的轮次可以激活")
        if not self.user_repo.judges_for_scope(round_obj.level, round_obj.region, round_obj.council).exists():
            raise RoundStateError(message="该范围内没有在岗评委，无法激活轮次", extra={"reason": NO_JUDGES_REASON})

        start_time = round_obj.start_time or now
        data = {"status": CompetitionRound.Status.ACTIVE, "start_time": start_time}
        if round_obj.timing_type == CompetitionRound.TimingType.COUNTDOWN:
            data["end_time"] = start_time + round_obj.countdown_duration
        elif round_obj.end_time is not None and round_obj.end_time <= now:
            raise ValidationError(message="截止时间已过，请先调整截止时间")

        pending_ids = list(
            self.submission_repo.awaiting_review(
                year=round_obj.year, level=round_obj.level, region=round_obj.region, council=round_obj.council
            )
            .order_by("id")
            .values_list("id", flat=True)
        )
        data.update({"pending_submissions_snapshot": pending_ids, "snapshot_created_at": now})
        self.repo.update(round_obj, data)
        logger.info(
            "轮次已激活",
            extra=logger_extra(
                {
                    "round_id": round_obj.id,
                    "start_time": start_time,
                    "end_time": round_obj.end_time,
                    "pending_submissions": len(pending_ids),
                    "actor_id": getattr(actor, "id", None),
                }
            ),
        )
        broadcast_round(round_obj.id, _json_safe({"event": "round_activated", "round": serialize_round(round_obj, now=now)}))
        return round_obj


class RoundExtendService(BaseService[CompetitionRound]):
    """
    延期：关闭前任意时刻可推迟截止时间
    - end_time += extra；倒计时轮次同步增加 countdown_duration
    - 已计算的名次不受影响
    """

    def __init__(self, repo: CompetitionRoundRepo | None = None):
        self.repo = repo or CompetitionRoundRepo()

    def perform(self, round_id, extra: timedelta, *, actor=None) -> CompetitionRound:
        require(extra.total_seconds() > 0, ValidationError(message="延长时长必须大于 0"))
        locked = self.repo.lock_by_ids([round_id])
        if not locked:
            raise NotFoundError(message="轮次不存在")
        round_obj = locked[0]
        require(round_obj.status != CompetitionRound.Status.CLOSED, RoundStateError(message="轮次已关闭，无法延期"))

        data: dict = {}
        if round_obj.end_time is not None:
            data["end_time"] = round_obj.end_time + extra
        if round_obj.timing_type == CompetitionRound.TimingType.COUNTDOWN:
            data["countdown_duration"] = (round_obj.countdown_duration or timedelta(0)) + extra
        self.repo.update(round_obj, data)
        logger.info(
            "轮次已延期",
            extra=logger_extra(
                {
                    "round_id": round_obj.id,
                    "extra_ms": timedelta_to_ms(extra),
                    "end_time": round_obj.effective_end_time(),
                    "actor_id": getattr(actor, "id", None),
                }
            ),
        )
        broadcast_round(round_obj.id, _json_safe({"event": "round_extended", "round": serialize_round(round_obj)}))
        return round_obj


class RoundUpdateService(BaseService[CompetitionRound]):
    """
    修改轮次配置：
    - 已结束/已关闭的轮次不可修改
    - 倒计时轮次已开始时按 start_time + 时长重算 end_time；未开始的等激活时再计算
    - 固定时间轮次的新截止时间必须晚于当前时间
    """

    def __init__(self, repo: CompetitionRoundRepo | None = None):
        self.repo = repo or CompetitionRoundRepo()

    def perform(self, round_id, schema: RoundUpdateSchema, *, actor=None, now: Optional[datetime] = None) -> CompetitionRound:
        now = now or timezone.now()
        locked = self.repo.lock_by_ids([round_id])
        if not locked:
            raise NotFoundError(message="轮次不存在")
        round_obj = locked[0]
        if round_obj.status in (CompetitionRound.Status.ENDED, CompetitionRound.Status.CLOSED):
            raise RoundStateError(message=f"轮次当前状态为 {round_obj.status}，无法修改")

        data = schema.changes()
        timing_type = schema.timing_type or round_obj.timing_type
        data["timing_type"] = timing_type
        if timing_type == CompetitionRound.TimingType.COUNTDOWN:
            duration = schema.countdown_duration or round_obj.countdown_duration
            require(duration is not None, ValidationError(message="倒计时轮次必须设置倒计时时长"))
            data["countdown_duration"] = duration
            data["end_time"] = round_obj.start_time + duration if round_obj.start_time else None
        else:
            end_time = schema.end_time or round_obj.end_time
            require(end_time is not None, ValidationError(message="固定时间轮次必须设置截止时间"))
            if schema.end_time is not None and schema.end_time <= now:
                raise ValidationError(message="截止时间必须晚于当前时间")
            data.update({"end_time": end_time, "countdown_duration": None})

        self.repo.update(round_obj, data)
        logger.info(
            "轮次已修改",
            extra=logger_extra(
                {
                    "round_id": round_obj.id,
                    "fields": sorted(data),
                    "end_time": round_obj.effective_end_time(),
                    "actor_id": getattr(actor, "id", None),
                }
            ),
        )
        broadcast_round(round_obj.id, _json_safe({"event": "round_updated", "round": serialize_round(round_obj, now=now)}))
        return round_obj


class RoundJudgeReminderService(BaseService[Notification]):
    """手动提醒单个评委；提醒内容由管理员填写"""

    def __init__(self, repo: CompetitionRoundRepo | None = None, user_repo: UserRepo | None = None):
        self.repo = repo or CompetitionRoundRepo()
        self.user_repo = user_repo or UserRepo()

    def perform(self, round_id, judge_id, schema: RoundReminderSchema, *, actor=None) -> Notification:
        round_obj = _get_round(self.repo, round_id)
        require(round_obj.status != CompetitionRound.Status.CLOSED, RoundStateError(message="轮次已关闭，无需提醒"))
        judge = self.user_repo.get_judge_or_none(judge_id)
        if judge is None:
            raise NotFoundError(message="评委不存在")
        return notify_custom_reminder([judge], round_obj=round_obj, message=schema.message, sender=actor)[0]


class RoundLocationReminderService(BaseService[list[Notification]]):
    """
    按地区手动提醒：
    - 地区缺省取轮次自身范围，只能在轮次范围内进一步收窄
    - 收件人为该地区、本层级的在岗评委
    """

    def __init__(self, repo: CompetitionRoundRepo | None = None, user_repo: UserRepo | None = None):
        self.repo = repo or CompetitionRoundRepo()
        self.user_repo = user_repo or UserRepo()

    def perform(self, round_id, schema: RoundReminderSchema, *, actor=None) -> list[Notification]:
        round_obj = _get_round(self.repo, round_id)
        require(round_obj.status != CompetitionRound.Status.CLOSED, RoundStateError(message="轮次已关闭，无需提醒"))
        region = schema.region or round_obj.region
        council = schema.council or round_obj.council
        if council and not region:
            raise ValidationError(message="指定区县时必须同时指定大区")
        if (round_obj.region and region != round_obj.region) or (round_obj.council and council != round_obj.council):
            raise ValidationError(
                message="提醒地区不在轮次范围内",
                extra={"region": region, "council": council},
            )
        judges = self.user_repo.judges_for_scope(round_obj.level, region, council)
        return notify_custom_reminder(judges, round_obj=round_obj, message=schema.message, sender=actor)


class RoundCloseService(BaseService[Optional[dict]]):
    """
    关闭轮次（手动关闭与调度 tick 共用）：
    - 已关闭拒绝；未开始不能关闭
    - wait_for_all_judges 为真时先过门禁：手动关闭未通过抛 JudgesIncompleteError，调度路径返回 None 保持 ended
    - auto_advance 为真时执行晋级事务（National 无下一层级，跳过）
    - 标记 closed 并对范围内排行榜定榜，返回关闭统计
    """

    atomic_enabled = False

    def __init__(
            self,
            repo: CompetitionRoundRepo | None = None,
            gate: JudgeCompletionGate | None = None,
            advancement_service: AdvancementService | None = None,
            submission_repo: SubmissionRepo | None = None,
            evaluation_repo: EvaluationRepo | None = None,
            user_repo: UserRepo | None = None,
    ):
        self.repo = repo or CompetitionRoundRepo()
        self.submission_repo = submission_repo or SubmissionRepo()
        self.evaluation_repo = evaluation_repo or EvaluationRepo()
        self.user_repo = user_repo or UserRepo()
        self.gate = gate or JudgeCompletionGate(
            user_repo=self.user_repo,
            submission_repo=self.submission_repo,
            evaluation_repo=self.evaluation_repo,
        )
        self.advancement_service = advancement_service or AdvancementService(submission_repo=self.submission_repo)

    def perform(self, round_id, *, actor=None, now: Optional[datetime] = None, manual: bool = True) -> Optional[dict]:
        now = now or timezone.now()
        round_obj = _get_round(self.repo, round_id)
        if round_obj.status == CompetitionRound.Status.CLOSED:
            raise RoundStateError(message="轮次已关闭")
        if round_obj.status == CompetitionRound.Status.PENDING:
            raise RoundStateError(message="轮次尚未开始，不能关闭")

        gate = self.gate.check_round(round_obj)
        if round_obj.wait_for_all_judges and not gate.complete:
            logger.info(
                "评委尚未全部完成，轮次保持待关闭",
                extra=logger_extra(
                    {
                        "round_id": round_obj.id,
                        "pending_count": gate.pending_count,
                        "reason": gate.reason,
                        "manual": manual,
                    }
                ),
            )
            if manual:
                raise JudgesIncompleteError(
                    message=f"仍有 {gate.pending_count} 份作品未完成评审",
                    extra={"pending_count": gate.pending_count, "reason": gate.reason},
                )
            return None

        stats = self._base_stats(round_obj, gate)
        if round_obj.auto_advance and get_next_level(round_obj.level) is not None:
            result = self.advancement_service.execute(
                year=round_obj.year,
                level=round_obj.level,
                region=round_obj.region,
                council=round_obj.council,
                actor=actor,
            )
            stats.update(
                {
                    "promoted": len(result.promoted_ids),
                    "eliminated": len(result.eliminated_ids),
                    "next_level": result.next_level,
                    "groups": [group.to_dict() for group in result.groups],
                }
            )

        updated = self.repo.filter(
            pk=round_obj.pk,
            status__in=[CompetitionRound.Status.ACTIVE, CompetitionRound.Status.ENDED],
        ).update(
            status=CompetitionRound.Status.CLOSED,
            closed_at=now,
            closed_by=actor,
            ended_at=round_obj.ended_at or now,
            metadata={**(round_obj.metadata or {}), "close_stats": stats},
            updated_at=now,
        )
        if not updated:
            raise RoundStateError(message="轮次已被其他操作关闭")

        finalized = finalize_leaderboards(
            year=round_obj.year,
            level=round_obj.level,
            region=round_obj.region,
            council=round_obj.council,
            submission_repo=self.submission_repo,
        )
        stats["finalized_leaderboards"] = finalized
        logger.info(
            "轮次已关闭",
            extra=logger_extra(
                {
                    "round_id": round_obj.id,
                    "manual": manual,
                    "promoted": stats["promoted"],
                    "eliminated": stats["eliminated"],
                    "finalized": finalized,
                    "actor_id": getattr(actor, "id", None),
                }
            ),
        )
        self._notify(round_obj, stats)
        return stats

    def _base_stats(self, round_obj: CompetitionRound, gate: GateResult) -> dict:
        scope = self.submission_repo.in_scope(
            year=round_obj.year, level=round_obj.level, region=round_obj.region, council=round_obj.council
        )
        scored = [value for value in scope.filter(status__in=Submission.RANKABLE_STATUSES)
                  .values_list("average_score", flat=True) if value]
        evaluations = self.evaluation_repo.filter(submission__in=scope, level=round_obj.level)
        if round_obj.start_time is not None:
            evaluations = evaluations.filter(created_at__gte=round_obj.start_time)
        return {
            "promoted": 0,
            "eliminated": 0,
            "next_level": get_next_level(round_obj.level),
            "total_submissions": scope.count(),
            "total_judges": gate.total_judges,
            "total_evaluations": evaluations.count(),
            "average_score": round(sum(scored) / len(scored), 2) if scored else 0,
            "groups": [],
        }

    def _notify(self, round_obj: CompetitionRound, stats: dict) -> None:
        broadcast_round(round_obj.id, _json_safe({"event": "round_closed", "round_id": round_obj.id, "stats": stats}))
        admins = list(self.user_repo.filter(role__in=["admin", "superadmin"], status="active"))
        if not admins:
            return
        try:
            with self.atomic():
                notify_round_closed(admins, round_id=round_obj.id, level=round_obj.level, stats=stats)
        except Exception:
            logger.exception("轮次关闭通知发送失败", extra=logger_extra({"round_id": round_obj.id}))


class RoundLeaderboardVisibilityService(BaseService[CompetitionRound]):
    """
    排行榜可见性：
    - frozen：记录当前范围内所有排行榜的快照，非管理员只看到快照
    - live：清除快照恢复实时
    """

    def __init__(self, repo: CompetitionRoundRepo | None = None):
        self.repo = repo or CompetitionRoundRepo()

    def perform(self, round_id, schema: RoundVisibilitySchema, *, actor=None) -> CompetitionRound:
        round_obj = _get_round(self.repo, round_id)
        if round_obj.status == CompetitionRound.Status.CLOSED:
            raise RoundStateError(message="轮次已关闭，排行榜已定榜")
        if schema.visibility == CompetitionRound.Visibility.FROZEN:
            boards = boards_in_scope(
                year=round_obj.year, level=round_obj.level, region=round_obj.region, council=round_obj.council
            )
            snapshot = {
                "frozen_at": timezone.now().isoformat(),
                "leaderboards": [_json_safe(serialize_leaderboard(board)) for board in boards],
            }
            data = {"leaderboard_visibility": schema.visibility, "frozen_snapshot": snapshot}
        else:
            data = {"leaderboard_visibility": schema.visibility, "frozen_snapshot": None}
        self.repo.update(round_obj, data)
        logger.info(
            "排行榜可见性已切换",
            extra=logger_extra(
                {"round_id": round_obj.id, "visibility": schema.visibility, "actor_id": getattr(actor, "id", None)}
            ),
        )
        return round_obj


def _json_safe(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_json_safe(item) for item in value]
    return value
