from __future__ import annotations

from django.db.models import Count, QuerySet

from apps.common.base.base_repo import BaseRepo

from .models import TieBreaking, TieBreakVote


class TieBreakingRepo(BaseRepo[TieBreaking]):
    """平局裁决仓储"""

    model = TieBreaking

    def get_queryset(self) -> QuerySet[TieBreaking]:
        return super().get_queryset().prefetch_related("candidates")


class TieBreakVoteRepo(BaseRepo[TieBreakVote]):
    """投票仓储"""

    model = TieBreakVote

    def tally(self, tiebreak: TieBreaking) -> dict[int, int]:
        """作品 → 得票数（未得票的候选不在结果中）"""
        rows = self.filter(tiebreak=tiebreak).values("submission_id").annotate(total=Count("id"))
        return {row["submission_id"]: row["total"] for row in rows}
