from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from apps.common.base.base_service import BaseService
from apps.common.exceptions import QuotaMissingError, TopLevelReachedError
from apps.common.infra import redis_client
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.levels import (
    LOCATION_SEPARATOR,
    Level,
    build_location_key,
    get_next_level,
    levels_above,
    parse_location_key,
)
from apps.common.utils.redis_keys import leaderboard_key, leaderboard_scope_prefix
from apps.notifications.services import notify_submission_eliminated, notify_submission_promoted
from apps.submissions.models import Submission
from apps.submissions.repo import EvaluationRepo, SubmissionRepo
from apps.submissions.services import JudgeAssignmentService, ScoreAggregatorService

from .models import Leaderboard, LeaderboardEntry, Quota
from .repo import LeaderboardEntryRepo, LeaderboardRepo, QuotaRepo
from .schemas import QuotaUpsertSchema

# 服务层：排行榜构建、配额裁决与晋级事务

logger = get_logger(__name__)


def serialize_quota(quota: Quota) -> dict:
    return {
        "id": quota.id,
        "year": quota.year,
        "level": quota.level,
        "quota": quota.quota,
        "updated_at": quota.updated_at,
    }


def serialize_entry(entry: LeaderboardEntry) -> dict:
    return {
        "rank": entry.rank,
        "submission_id": entry.submission_id,
        "teacher_id": entry.teacher_id,
        "teacher_name": entry.teacher_name,
        "school": entry.school,
        "region": entry.region,
        "council": entry.council,
        "category": entry.category,
        "class_level": entry.class_level,
        "subject": entry.subject,
        "area_of_focus": entry.area_of_focus,
        "average_score": entry.average_score,
        "total_evaluations": entry.total_evaluations,
        "submission_created_at": entry.submission_created_at,
        "status": entry.status,
    }


def serialize_leaderboard(board: Leaderboard, entries: Optional[Iterable[LeaderboardEntry]] = None) -> dict:
    """排行榜序列化：元信息 + 按名次排列的条目"""
    if entries is None:
        entries = board.entries.order_by("rank")
    return {
        "year": board.year,
        "area_of_focus": board.area_of_focus,
        "level": board.level,
        "location_key": board.location_key,
        "total_submissions": board.total_submissions,
        "quota": board.quota,
        "is_finalized": board.is_finalized,
        "finalized_at": board.finalized_at,
        "last_updated": board.last_updated,
        "entries": [serialize_entry(entry) for entry in entries],
    }


def invalidate_leaderboard_cache(year: int, area_of_focus: str, level: str, location_key: str) -> None:
    """事务提交后再删缓存；未处于事务中时立即执行"""
    key = leaderboard_key(year, area_of_focus, level, location_key)
    transaction.on_commit(lambda: redis_client.delete(key))


def location_filters(level: str, region: Optional[str] = None, council: Optional[str] = None) -> dict:
    """
    轮次/晋级范围 → 排行榜地区键过滤条件
    - Council 指定区县时精确匹配，只指定大区时按 "region::" 前缀匹配
    - Regional 指定大区时精确匹配；National 或全国范围不限
    """
    if level == Level.COUNCIL and region:
        if council:
            return {"location_key": build_location_key(level, region, council)}
        return {"location_key__startswith": f"{region}{LOCATION_SEPARATOR}"}
    if level == Level.REGIONAL and region:
        return {"location_key": region}
    return {}


def boards_in_scope(
        *,
        year: int,
        level: str,
        region: Optional[str] = None,
        council: Optional[str] = None,
        repo: LeaderboardRepo | None = None,
) -> QuerySet[Leaderboard]:
    repo = repo or LeaderboardRepo()
    return repo.for_level(year=year, level=level).filter(**location_filters(level, region, council))


# ------------------------
# 排行榜构建
# ------------------------

@dataclass
class _Row:
    submission: Submission
    score: float
    total_evaluations: int
    status: str


class LeaderboardBuildService(BaseService[Optional[Leaderboard]]):
    """
    排行榜构建服务：
    - 选取范围内未取消资格、已评分及之后的作品，并保留曾在本榜、现已晋级到更高层级的作品
    - 条目状态取自作品本身（淘汰/晋级），并发重建不会丢失晋级标记
    - 平均分为 0 或评分数与上一版快照不一致时重算
    - 0 分不上榜；按 (平均分降序, 提交时间升序) 排序，名次稠密 1..N
    - 条目整体替换；已定榜的排行榜不再重建
    - 范围内没有可上榜作品且排行榜尚不存在时返回 None
    """

    def __init__(
            self,
            board_repo: LeaderboardRepo | None = None,
            entry_repo: LeaderboardEntryRepo | None = None,
            submission_repo: SubmissionRepo | None = None,
            evaluation_repo: EvaluationRepo | None = None,
            quota_repo: QuotaRepo | None = None,
    ):
        self.board_repo = board_repo or LeaderboardRepo()
        self.entry_repo = entry_repo or LeaderboardEntryRepo()
        self.submission_repo = submission_repo or SubmissionRepo()
        self.evaluation_repo = evaluation_repo or EvaluationRepo()
        self.quota_repo = quota_repo or QuotaRepo()
        self.aggregator = ScoreAggregatorService(evaluation_repo=self.evaluation_repo,
                                                 submission_repo=self.submission_repo)

    def _collect_rows(self, board: Optional[Leaderboard], *, year: int, area_of_focus: str, level: str,
                      location_key: str) -> list[_Row]:
        region, council = parse_location_key(level, location_key)
        candidates = list(
            self.submission_repo.in_scope(
                year=year, level=level, region=region, council=council, area_of_focus=area_of_focus
            ).filter(status__in=Submission.RANKABLE_STATUSES)
        )
        previous = self.entry_repo.status_by_submission(board) if board is not None else {}
        counts = self.evaluation_repo.count_by_submission([item.id for item in candidates], level=level)

        rows: list[_Row] = []
        seen: set[int] = set()
        for submission in candidates:
            seen.add(submission.id)
            prev = previous.get(submission.id)
            total = counts.get(submission.id, 0)
            score = submission.average_score or 0
            stale = prev is None or prev.total_evaluations != total
            if not score or stale:
                score = self.aggregator.execute(submission)
            # 条目状态以作品当前状态为准，不依赖上一版快照
            if submission.status == Submission.Status.ELIMINATED:
                status = LeaderboardEntry.Status.ELIMINATED
            else:
                status = LeaderboardEntry.Status.EVALUATED
            rows.append(_Row(submission=submission, score=score, total_evaluations=total, status=status))

        # 曾在本榜、现已晋级到更高层级的作品：保留快照分数并标记为晋级
        left_ids = [sid for sid in previous if sid not in seen]
        if left_ids:
            promoted = self.submission_repo.filter(
                pk__in=left_ids,
                disqualified=False,
                status=Submission.Status.PROMOTED,
                level__in=levels_above(level),
            )
            for submission in promoted:
                prev = previous[submission.id]
                rows.append(
                    _Row(
                        submission=submission,
                        score=prev.average_score or submission.average_score or 0,
                        total_evaluations=prev.total_evaluations,
                        status=LeaderboardEntry.Status.PROMOTED,
                    )
                )
        return [row for row in rows if row.score > 0]

    def perform(self, *, year: int, area_of_focus: str, level: str, location_key: str) -> Optional[Leaderboard]:
        board = self.board_repo.get_for_scope(
            year=year, area_of_focus=area_of_focus, level=level, location_key=location_key
        )
        if board is not None and board.is_finalized:
            return board

        rows = self._collect_rows(board, year=year, area_of_focus=area_of_focus, level=level,
                                  location_key=location_key)
        if board is None and not rows:
            return None
        if board is None:
            board = self.board_repo.get_or_create_for_scope(
                year=year, area_of_focus=area_of_focus, level=level, location_key=location_key
            )

        rows.sort(key=lambda row: (-row.score, row.submission.created_at, row.submission.id))
        entries = []
        for rank, row in enumerate(rows, start=1):
            submission = row.submission
            entries.append(
                LeaderboardEntry(
                    leaderboard=board,
                    submission=submission,
                    teacher_id=submission.teacher_id,
                    teacher_name=submission.teacher_name,
                    school=submission.school,
                    region=submission.region,
                    council=submission.council,
                    category=submission.category,
                    class_level=submission.class_level,
                    subject=submission.subject,
                    area_of_focus=submission.area_of_focus,
                    rank=rank,
                    average_score=row.score,
                    total_evaluations=row.total_evaluations,
                    submission_created_at=submission.created_at,
                    status=row.status,
                )
            )
        self.entry_repo.filter(leaderboard=board).delete()
        LeaderboardEntry.objects.bulk_create(entries)

        quota = self.quota_repo.get_for(year, level)
        self.board_repo.update(
            board,
            {
                "total_submissions": len(entries),
                "quota": quota.quota if quota else None,
                "last_updated": timezone.now(),
            },
        )
        invalidate_leaderboard_cache(year, area_of_focus, level, location_key)
        logger.info(
            "排行榜已重建",
            extra=logger_extra(
                {
                    "year": year,
                    "level": level,
                    "location_key": location_key,
                    "area_of_focus": area_of_focus,
                    "entries": len(entries),
                }
            ),
        )
        return board


class LeaderboardQueryService(BaseService[Optional[dict]]):
    """
    排行榜读取：
    - 优先读取 Redis 缓存，未命中时重建（已定榜直接读取）并回填缓存
    - 轮次处于冻结可见性时，非管理员读取冻结快照
    """

    atomic_enabled = False

    def __init__(self, build_service: LeaderboardBuildService | None = None, cache_ttl_seconds: int | None = None):
        self.build_service = build_service or LeaderboardBuildService()
        self.cache_ttl_seconds = cache_ttl_seconds

    def _cache_ttl(self) -> int:
        if self.cache_ttl_seconds is not None:
            return self.cache_ttl_seconds
        return int(getattr(settings, "LEADERBOARD_CACHE_TTL", 300))

    def perform(self, *, year: int, area_of_focus: str, level: str, location_key: str,
                live: bool = True) -> Optional[dict]:
        if not live:
            frozen = self._frozen_payload(year=year, area_of_focus=area_of_focus, level=level,
                                          location_key=location_key)
            if frozen is not None:
                return frozen

        cache_key = leaderboard_key(year, area_of_focus, level, location_key)
        cached = redis_client.get_json(cache_key)
        if isinstance(cached, dict):
            return cached

        board = self.build_service.execute(
            year=year, area_of_focus=area_of_focus, level=level, location_key=location_key
        )
        if board is None:
            return None
        payload = serialize_leaderboard(board)
        redis_client.set_json(cache_key, payload, ex=self._cache_ttl())
        return payload

    @staticmethod
    def _frozen_payload(*, year: int, area_of_focus: str, level: str, location_key: str) -> Optional[dict]:
        from apps.rounds.models import CompetitionRound
        from apps.rounds.repo import CompetitionRoundRepo

        region, council = parse_location_key(level, location_key)
        round_obj = CompetitionRoundRepo().covering_round(
            year=year,
            level=level,
            region=region,
            council=council,
            statuses=(CompetitionRound.Status.ACTIVE, CompetitionRound.Status.ENDED),
        )
        if round_obj is None or round_obj.leaderboard_visibility != CompetitionRound.Visibility.FROZEN:
            return None
        snapshot = round_obj.frozen_snapshot or {}
        for board in snapshot.get("leaderboards", []):
            if board.get("area_of_focus") == area_of_focus and board.get("location_key") == location_key:
                return {**board, "frozen": True, "frozen_at": snapshot.get("frozen_at")}
        return None


# ------------------------
# 配额
# ------------------------

class QuotaUpsertService(BaseService[Quota]):
    """设置 (年度, 层级) 的晋级配额，已存在时覆盖"""

    def __init__(self, repo: QuotaRepo | None = None):
        self.repo = repo or QuotaRepo()

    def perform(self, actor, schema: QuotaUpsertSchema) -> Quota:
        quota = self.repo.get_for(schema.year, schema.level)
        if quota is None:
            quota = self.repo.create(
                {"year": schema.year, "level": schema.level, "quota": schema.quota, "created_by": actor}
            )
        else:
            quota = self.repo.update(quota, {"quota": schema.quota})
        # 缓存的排行榜带有配额字段，整层失效
        prefix = leaderboard_scope_prefix(schema.year, schema.level)
        transaction.on_commit(lambda: redis_client.delete_prefix(prefix))
        logger.info(
            "晋级配额已设置",
            extra=logger_extra({"year": schema.year, "level": schema.level, "quota": schema.quota}),
        )
        return quota


@dataclass
class QuotaResolution:
    promoted: list = field(default_factory=list)
    eliminated: list = field(default_factory=list)
    eligible: list = field(default_factory=list)


def resolve_quota(entries: Iterable[LeaderboardEntry], quota: int) -> QuotaResolution:
    """
    配额裁决（纯函数）：
    - 已晋级/已淘汰的条目不再参与，保证重复执行幂等
    - 其余按名次取前 quota 名晋级，余下淘汰；不足 quota 时全部晋级
    """
    eligible = sorted((entry for entry in entries if not entry.is_terminal), key=lambda entry: entry.rank)
    quota = max(0, int(quota))
    return QuotaResolution(promoted=eligible[:quota], eliminated=eligible[quota:], eligible=eligible)


# ------------------------
# 晋级事务
# ------------------------

@dataclass
class GroupOutcome:
    area_of_focus: str
    location_key: str
    status: str
    total_in_group: int = 0
    promoted: list = field(default_factory=list)
    eliminated: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "area_of_focus": self.area_of_focus,
            "location_key": self.location_key,
            "status": self.status,
            "total_in_group": self.total_in_group,
            "promoted": [item["submission"].id for item in self.promoted],
            "eliminated": [item["submission"].id for item in self.eliminated],
        }


@dataclass
class AdvancementResult:
    year: int
    level: str
    next_level: str
    quota: int
    groups: list[GroupOutcome] = field(default_factory=list)

    @property
    def promoted_ids(self) -> list[int]:
        return [item["submission"].id for group in self.groups for item in group.promoted]

    @property
    def eliminated_ids(self) -> list[int]:
        return [item["submission"].id for group in self.groups for item in group.eliminated]

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "level": self.level,
            "next_level": self.next_level,
            "quota": self.quota,
            "promoted": len(self.promoted_ids),
            "eliminated": len(self.eliminated_ids),
            "promoted_ids": self.promoted_ids,
            "eliminated_ids": self.eliminated_ids,
            "groups": [group.to_dict() for group in self.groups],
        }


class AdvancementService(BaseService[AdvancementResult]):
    """
    晋级事务：
    - 按 (领域 × 地区) 分组，每组在独立事务中加行锁、重建排行榜、裁决配额并写回作品与榜单状态
    - 并发冲突（OperationalError）整组重试，次数由 ADVANCEMENT_TX_RETRIES 控制
    - 提交后：Council → Regional 晋级作品自动指派大区评委、失效目标层级排行榜缓存、通知教师
    - 提交后步骤失败只记录日志，不回滚已提交的晋级
    """

    atomic_enabled = False

    def __init__(
            self,
            submission_repo: SubmissionRepo | None = None,
            quota_repo: QuotaRepo | None = None,
            entry_repo: LeaderboardEntryRepo | None = None,
            build_service: LeaderboardBuildService | None = None,
            assignment_service: JudgeAssignmentService | None = None,
    ):
        self.submission_repo = submission_repo or SubmissionRepo()
        self.quota_repo = quota_repo or QuotaRepo()
        self.entry_repo = entry_repo or LeaderboardEntryRepo()
        self.build_service = build_service or LeaderboardBuildService(submission_repo=self.submission_repo)
        self.assignment_service = assignment_service or JudgeAssignmentService()

    def validate(self, *, year: int, level: str, region: Optional[str] = None, council: Optional[str] = None,
                 actor=None) -> None:
        if get_next_level(level) is None:
            raise TopLevelReachedError(extra={"level": level})
        if self.quota_repo.get_for(year, level) is None:
            raise QuotaMissingError(
                message=f"{year} 年 {level} 层级尚未设置晋级配额",
                extra={"year": year, "level": level},
            )

    def perform(self, *, year: int, level: str, region: Optional[str] = None, council: Optional[str] = None,
                actor=None) -> AdvancementResult:
        next_level = get_next_level(level)
        quota = self.quota_repo.get_for(year, level).quota
        result = AdvancementResult(year=year, level=level, next_level=next_level, quota=quota)
        attempts = int(getattr(settings, "ADVANCEMENT_TX_RETRIES", 3))

        for group in self.submission_repo.ranking_groups(year=year, level=level, region=region, council=council):
            area = group["area_of_focus"]
            location_key = build_location_key(level, group.get("region"), group.get("council"))
            outcome = self.run_atomic_with_retry(
                lambda: self._advance_group(
                    year=year, level=level, next_level=next_level, area_of_focus=area,
                    location_key=location_key, quota=quota,
                ),
                attempts=attempts,
                label=f"advance:{year}:{level}:{location_key}:{area}",
            )
            result.groups.append(outcome)
            logger.info(
                "分组晋级完成",
                extra=logger_extra(
                    {
                        "year": year,
                        "level": level,
                        "location_key": location_key,
                        "area_of_focus": area,
                        "outcome": outcome.status,
                        "promoted": len(outcome.promoted),
                        "eliminated": len(outcome.eliminated),
                    }
                ),
            )
            if outcome.promoted or outcome.eliminated:
                self._after_commit(outcome, year=year, level=level, next_level=next_level)

        logger.info(
            "晋级执行完成",
            extra=logger_extra(
                {
                    "year": year,
                    "level": level,
                    "region": region,
                    "council": council,
                    "groups": len(result.groups),
                    "promoted": len(result.promoted_ids),
                    "eliminated": len(result.eliminated_ids),
                    "actor_id": getattr(actor, "id", None),
                }
            ),
        )
        return result

    def _advance_group(self, *, year: int, level: str, next_level: str, area_of_focus: str, location_key: str,
                       quota: int) -> GroupOutcome:
        region, council = parse_location_key(level, location_key)
        scope_ids = list(
            self.submission_repo.in_scope(
                year=year, level=level, region=region, council=council, area_of_focus=area_of_focus
            ).values_list("id", flat=True)
        )
        locked = {item.id: item for item in self.submission_repo.lock_by_ids(scope_ids)}

        board = self.build_service.execute(
            year=year, area_of_focus=area_of_focus, level=level, location_key=location_key
        )
        if board is None:
            return GroupOutcome(area_of_focus=area_of_focus, location_key=location_key, status="no_eligible")
        if board.is_finalized:
            return GroupOutcome(area_of_focus=area_of_focus, location_key=location_key, status="finalized",
                                total_in_group=board.total_submissions)

        entries = list(self.entry_repo.for_board(board))
        resolution = resolve_quota(entries, quota)
        outcome = GroupOutcome(area_of_focus=area_of_focus, location_key=location_key, status="advanced",
                               total_in_group=len(entries))
        if not resolution.eligible:
            outcome.status = "no_eligible"
            return outcome

        now = timezone.now()
        changed_subs: list[Submission] = []
        changed_entries: list[LeaderboardEntry] = []
        for entry in resolution.promoted:
            submission = locked.get(entry.submission_id)
            if submission is None:
                continue
            submission.level = next_level
            submission.status = Submission.Status.PROMOTED
            submission.average_score = entry.average_score
            submission.updated_at = now
            entry.status = LeaderboardEntry.Status.PROMOTED
            changed_subs.append(submission)
            changed_entries.append(entry)
            outcome.promoted.append({"submission": submission, "rank": entry.rank})
        for entry in resolution.eliminated:
            submission = locked.get(entry.submission_id)
            if submission is None:
                continue
            submission.status = Submission.Status.ELIMINATED
            submission.average_score = entry.average_score
            submission.updated_at = now
            entry.status = LeaderboardEntry.Status.ELIMINATED
            changed_subs.append(submission)
            changed_entries.append(entry)
            outcome.eliminated.append({"submission": submission, "rank": entry.rank})

        self.submission_repo.bulk_update(changed_subs, ["level", "status", "updated_at"])
        self.entry_repo.bulk_update(changed_entries, ["status"])
        invalidate_leaderboard_cache(year, area_of_focus, level, location_key)
        return outcome

    def _after_commit(self, outcome: GroupOutcome, *, year: int, level: str, next_level: str) -> None:
        """提交后的附带步骤：逐项隔离失败，不影响已提交的晋级"""
        for item in outcome.promoted:
            submission = item["submission"]
            if level == Level.COUNCIL:
                try:
                    self.assignment_service.execute(submission)
                except Exception:
                    logger.exception(
                        "晋级后自动指派评委失败",
                        extra=logger_extra({"submission_id": submission.id, "level": next_level}),
                    )
            invalidate_leaderboard_cache(
                year,
                submission.area_of_focus,
                next_level,
                build_location_key(next_level, submission.region, submission.council),
            )
            try:
                with self.atomic():
                    notify_submission_promoted(
                        submission, new_level=next_level, rank=item["rank"], total_in_group=outcome.total_in_group
                    )
            except Exception:
                logger.exception("晋级通知发送失败", extra=logger_extra({"submission_id": submission.id}))
        for item in outcome.eliminated:
            submission = item["submission"]
            try:
                with self.atomic():
                    notify_submission_eliminated(
                        submission, rank=item["rank"], total_in_group=outcome.total_in_group
                    )
            except Exception:
                logger.exception("淘汰通知发送失败", extra=logger_extra({"submission_id": submission.id}))


def finalize_leaderboards(
        *,
        year: int,
        level: str,
        region: Optional[str] = None,
        council: Optional[str] = None,
        build_service: LeaderboardBuildService | None = None,
        submission_repo: SubmissionRepo | None = None,
) -> int:
    """
    定榜：先补建范围内尚未生成的排行榜，再统一标记 is_finalized
    返回本次定榜数量
    """
    submission_repo = submission_repo or SubmissionRepo()
    build_service = build_service or LeaderboardBuildService(submission_repo=submission_repo)
    for group in submission_repo.ranking_groups(year=year, level=level, region=region, council=council):
        build_service.execute(
            year=year,
            area_of_focus=group["area_of_focus"],
            level=level,
            location_key=build_location_key(level, group.get("region"), group.get("council")),
        )
    boards = list(boards_in_scope(year=year, level=level, region=region, council=council).filter(is_finalized=False))
    now = timezone.now()
    for board in boards:
        board.is_finalized = True
        board.finalized_at = now
        invalidate_leaderboard_cache(board.year, board.area_of_focus, board.level, board.location_key)
    LeaderboardRepo().bulk_update(boards, ["is_finalized", "finalized_at"])
    return len(boards)
