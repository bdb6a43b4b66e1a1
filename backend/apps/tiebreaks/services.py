from __future__ import annotations

from typing import Optional

from django.utils import timezone

from apps.accounts.repo import UserRepo
from apps.common.base.base_service import BaseService
from apps.common.exceptions import (
    DuplicateVoteError,
    InvalidCandidateError,
    NoVotesError,
    NotFoundError,
    PermissionDeniedError,
    TieBreakResolvedError,
    ValidationError,
)
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.levels import scope_filters
from apps.submissions.repo import SubmissionRepo

from .models import TieBreaking, TieBreakVote
from .repo import TieBreakingRepo, TieBreakVoteRepo
from .schemas import TieBreakCreateSchema, TieBreakResolveSchema, TieBreakVoteSchema

# 服务层：平局裁决的发起、投票与裁决

logger = get_logger(__name__)


def serialize_tiebreak(tiebreak: TieBreaking, *, tally: Optional[dict[int, int]] = None) -> dict:
    candidates = sorted(tiebreak.candidates.all(), key=lambda item: item.id)
    tally = tally if tally is not None else TieBreakVoteRepo().tally(tiebreak)
    return {
        "id": tiebreak.id,
        "year": tiebreak.year,
        "level": tiebreak.level,
        "region": tiebreak.region,
        "council": tiebreak.council,
        "location_key": tiebreak.location_key,
        "area_of_focus": tiebreak.area_of_focus,
        "quota": tiebreak.quota,
        "status": tiebreak.status,
        "candidates": [
            {
                "submission_id": item.id,
                "teacher_name": item.teacher_name,
                "average_score": item.average_score,
                "votes": tally.get(item.id, 0),
            }
            for item in candidates
        ],
        "total_votes": sum(tally.values()),
        "winners": tiebreak.winners or [],
        "results": tiebreak.results or [],
        "created_at": tiebreak.created_at,
        "resolved_at": tiebreak.resolved_at,
        "resolved_by": tiebreak.resolved_by_id,
    }


def _lock_tiebreak(repo: TieBreakingRepo, tiebreak_id) -> TieBreaking:
    locked = repo.lock_by_ids([tiebreak_id])
    if not locked:
        raise NotFoundError(message="平局裁决不存在")
    return locked[0]


class TieBreakCreateService(BaseService[TieBreaking]):
    """发起平局裁决：候选作品须属于裁决范围（年度、层级、地区，指定时还有领域）且未被取消资格"""

    def __init__(self, repo: TieBreakingRepo | None = None, submission_repo: SubmissionRepo | None = None):
        self.repo = repo or TieBreakingRepo()
        self.submission_repo = submission_repo or SubmissionRepo()

    def perform(self, actor, schema: TieBreakCreateSchema) -> TieBreaking:
        filters = {
            "pk__in": schema.candidate_ids,
            "year": schema.year,
            "level": schema.level,
            "disqualified": False,
            **scope_filters(schema.level, schema.region, schema.council),
        }
        if schema.area_of_focus:
            filters["area_of_focus"] = schema.area_of_focus
        candidates = list(self.submission_repo.filter(**filters))
        found = {item.id for item in candidates}
        missing = [item for item in schema.candidate_ids if item not in found]
        if missing:
            raise ValidationError(
                message="候选作品不存在、已取消资格或不在裁决范围内",
                extra={"invalid_ids": missing},
            )
        tiebreak = self.repo.create(
            {
                "year": schema.year,
                "level": schema.level,
                "region": schema.region,
                "council": schema.council,
                "area_of_focus": schema.area_of_focus,
                "quota": schema.quota,
                "created_by": actor,
            }
        )
        tiebreak.candidates.set(candidates)
        logger.info(
            "平局裁决已发起",
            extra=logger_extra(
                {
                    "tiebreak_id": tiebreak.id,
                    "year": tiebreak.year,
                    "level": tiebreak.level,
                    "location_key": tiebreak.location_key,
                    "candidates": sorted(found),
                    "quota": tiebreak.quota,
                }
            ),
        )
        return tiebreak


class TieBreakVoteService(BaseService[TieBreakVote]):
    """
    评委投票：
    - 已裁决拒绝；投票对象必须在候选名单中
    - 评委须为该层级的在岗评委，每人一票，重复投票拒绝且计票不变
    """

    def __init__(
            self,
            repo: TieBreakingRepo | None = None,
            vote_repo: TieBreakVoteRepo | None = None,
            user_repo: UserRepo | None = None,
    ):
        self.repo = repo or TieBreakingRepo()
        self.vote_repo = vote_repo or TieBreakVoteRepo()
        self.user_repo = user_repo or UserRepo()

    def perform(self, tiebreak_id, judge, schema: TieBreakVoteSchema) -> TieBreakVote:
        tiebreak = _lock_tiebreak(self.repo, tiebreak_id)
        if tiebreak.is_resolved:
            raise TieBreakResolvedError()
        if not self.user_repo.active_judges().filter(pk=judge.pk, assigned_level=tiebreak.level).exists():
            raise PermissionDeniedError(message="仅该层级的在岗评委可以投票")
        if not tiebreak.candidates.filter(pk=schema.submission_id).exists():
            raise InvalidCandidateError(extra={"submission_id": schema.submission_id})
        if self.vote_repo.exists(tiebreak=tiebreak, judge=judge):
            raise DuplicateVoteError()
        vote = self.vote_repo.create(
            {"tiebreak": tiebreak, "judge": judge, "submission_id": schema.submission_id}
        )
        logger.info(
            "平局裁决投票",
            extra=logger_extra(
                {"tiebreak_id": tiebreak.id, "judge_id": judge.id, "submission_id": schema.submission_id}
            ),
        )
        return vote


class TieBreakResolveService(BaseService[TieBreaking]):
    """
    裁决：
    - 已裁决或零票拒绝
    - 排序规则：得票数降序 → 平均分降序 → 提交时间升序
    - 胜出名额缺省取发起时的 quota；只记录结果，不修改作品
    """

    def __init__(self, repo: TieBreakingRepo | None = None, vote_repo: TieBreakVoteRepo | None = None):
        self.repo = repo or TieBreakingRepo()
        self.vote_repo = vote_repo or TieBreakVoteRepo()

    def perform(self, tiebreak_id, schema: TieBreakResolveSchema | None = None, *, actor=None) -> TieBreaking:
        tiebreak = _lock_tiebreak(self.repo, tiebreak_id)
        if tiebreak.is_resolved:
            raise TieBreakResolvedError()
        tally = self.vote_repo.tally(tiebreak)
        if not sum(tally.values()):
            raise NoVotesError()

        quota = (schema.quota if schema is not None and schema.quota else None) or tiebreak.quota or 1
        ranked = sorted(
            tiebreak.candidates.all(),
            key=lambda item: (-tally.get(item.id, 0), -(item.average_score or 0), item.created_at, item.id),
        )
        results = [
            {
                "rank": index,
                "submission_id": item.id,
                "votes": tally.get(item.id, 0),
                "average_score": item.average_score,
            }
            for index, item in enumerate(ranked, start=1)
        ]
        winners = [item.id for item in ranked[:quota]]
        self.repo.update(
            tiebreak,
            {
                "status": TieBreaking.Status.RESOLVED,
                "winners": winners,
                "results": results,
                "resolved_at": timezone.now(),
                "resolved_by": actor,
            },
        )
        logger.info(
            "平局裁决完成",
            extra=logger_extra(
                {
                    "tiebreak_id": tiebreak.id,
                    "winners": winners,
                    "quota": quota,
                    "total_votes": sum(tally.values()),
                    "actor_id": getattr(actor, "id", None),
                }
            ),
        )
        return tiebreak
