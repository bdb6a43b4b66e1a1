from __future__ import annotations

from typing import Optional

from django.db.models import Q, QuerySet

from apps.common.base.base_repo import BaseRepo

from .models import CompetitionRound


class CompetitionRoundRepo(BaseRepo[CompetitionRound]):
    """轮次仓储"""

    model = CompetitionRound

    def overlapping_scope(
            self,
            *,
            year: int,
            level: str,
            region: Optional[str],
            council: Optional[str],
    ) -> QuerySet[CompetitionRound]:
        """
        同一 (年度, 层级) 下范围重叠且未关闭的轮次，用于保证各轮次范围互不相交
        - 任一方为全层级范围（未指定大区）即重叠
        - 大区相同且任一方未指定区县，或区县相同，即重叠
        """
        queryset = self.filter(year=year, level=level).exclude(status=CompetitionRound.Status.CLOSED)
        whole_level = Q(region__isnull=True) | Q(region="")
        if not region:
            return queryset
        same_region = Q(region=region)
        if council:
            same_region &= Q(council__isnull=True) | Q(council="") | Q(council=council)
        return queryset.filter(whole_level | same_region)

    def by_status(self, status: str) -> QuerySet[CompetitionRound]:
        return self.filter(status=status).order_by("id")

    def covering_round(
            self,
            *,
            year: int,
            level: str,
            region: Optional[str],
            council: Optional[str],
            statuses: tuple = (CompetitionRound.Status.ACTIVE, CompetitionRound.Status.ENDED),
    ) -> Optional[CompetitionRound]:
        """
        作品所在的轮次：层级一致，地区为空（全国）或与作品一致
        - 多个候选时，精确匹配区县 > 仅匹配大区 > 全国范围
        """
        candidates = list(
            self.filter(year=year, level=level, status__in=list(statuses))
            .filter(Q(region__isnull=True) | Q(region="") | Q(region=region))
            .filter(Q(council__isnull=True) | Q(council="") | Q(council=council))
            .order_by("-created_at", "-id")
        )
        if not candidates:
            return None

        def specificity(item: CompetitionRound) -> int:
            return (2 if item.council else 0) + (1 if item.region else 0)

        return max(candidates, key=specificity)
