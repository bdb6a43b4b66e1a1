from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from django.db.models import Count, QuerySet

from apps.common.base.base_repo import BaseRepo
from apps.common.levels import scope_filters

from .models import Evaluation, Submission, SubmissionAssignment


class SubmissionRepo(BaseRepo[Submission]):
    """作品仓储：按年度/层级/地区/领域组合查询"""

    model = Submission

    def get_queryset(self) -> QuerySet[Submission]:
        return super().get_queryset().select_related("teacher")

    def in_scope(
            self,
            *,
            year: int,
            level: str,
            region: Optional[str] = None,
            council: Optional[str] = None,
            area_of_focus: Optional[str] = None,
    ) -> QuerySet[Submission]:
        """某年度某层级地区范围内的作品（不含取消资格）"""
        filters = {"year": year, "level": level, "disqualified": False, **scope_filters(level, region, council)}
        if area_of_focus is not None:
            filters["area_of_focus"] = area_of_focus
        return self.filter(**filters)

    def awaiting_review(
            self,
            *,
            year: int,
            level: str,
            region: Optional[str] = None,
            council: Optional[str] = None,
    ) -> QuerySet[Submission]:
        """
        仍在本层级等待评审/评审中的作品：
        - 排除草稿与已淘汰
        - 状态为 promoted 且 level 等于本层级，说明刚从下一级晋级上来，仍需本层级评审
        """
        return self.in_scope(year=year, level=level, region=region, council=council).exclude(
            status__in=[Submission.Status.PENDING, Submission.Status.ELIMINATED]
        )

    def ranking_groups(
            self,
            *,
            year: int,
            level: str,
            region: Optional[str] = None,
            council: Optional[str] = None,
    ) -> list[dict]:
        """
        本层级范围内的排名分组：(领域, 大区, 区县) 去重组合
        - 只统计已评分及之后的作品；National 不区分地区
        """
        fields = ["area_of_focus"]
        if level != "National":
            fields.append("region")
        if level == "Council":
            fields.append("council")
        rows = (
            self.in_scope(year=year, level=level, region=region, council=council)
            .filter(status__in=Submission.RANKABLE_STATUSES)
            .values(*fields)
            .distinct()
            .order_by(*fields)
        )
        return list(rows)


class EvaluationRepo(BaseRepo[Evaluation]):
    """评分仓储"""

    model = Evaluation

    def for_submission(self, submission: Submission, *, level: Optional[str] = None) -> QuerySet[Evaluation]:
        qs = self.filter(submission=submission)
        if level is not None:
            qs = qs.filter(level=level)
        return qs

    def judge_ids_by_submission(
            self,
            submission_ids: Iterable[int],
            *,
            level: Optional[str] = None,
            since: Optional[datetime] = None,
    ) -> dict[int, set[int]]:
        """
        一次性取出每份作品的已评分评委集合，避免逐条查询
        - since：只统计该时间点及之后的评分（轮次开始前的评分不计入）
        """
        qs = self.filter(submission_id__in=list(submission_ids))
        if level is not None:
            qs = qs.filter(level=level)
        if since is not None:
            qs = qs.filter(created_at__gte=since)
        result: dict[int, set[int]] = {}
        for submission_id, judge_id in qs.values_list("submission_id", "judge_id"):
            result.setdefault(submission_id, set()).add(judge_id)
        return result

    def count_by_submission(self, submission_ids: Iterable[int], *, level: Optional[str] = None) -> dict[int, int]:
        qs = self.filter(submission_id__in=list(submission_ids))
        if level is not None:
            qs = qs.filter(level=level)
        rows = qs.values("submission_id").annotate(total=Count("id"))
        return {row["submission_id"]: row["total"] for row in rows}


class SubmissionAssignmentRepo(BaseRepo[SubmissionAssignment]):
    """评审指派仓储"""

    model = SubmissionAssignment

    def get_queryset(self) -> QuerySet[SubmissionAssignment]:
        return super().get_queryset().select_related("judge", "submission")

    def judge_by_submission(self, submission_ids: Iterable[int], *, level: str) -> dict[int, int]:
        """作品 → 当前层级指派评委"""
        rows = self.filter(submission_id__in=list(submission_ids), level=level).values_list(
            "submission_id", "judge_id"
        )
        return dict(rows)

    def load_by_judge(
            self,
            *,
            level: str,
            region: Optional[str],
            council: Optional[str],
    ) -> dict[int, int]:
        """某层级地区下每位评委已有的指派数量，用于轮询均衡"""
        filters = {"level": level, **scope_filters(level, region, council)}
        rows = self.filter(**filters).values("judge_id").annotate(total=Count("id"))
        return {row["judge_id"]: row["total"] for row in rows}
