from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.common.levels import Level, build_location_key

# 模型定义：平局裁决与评委投票

User = settings.AUTH_USER_MODEL


class TieBreaking(models.Model):
    """
    平局裁决：
    - 管理员对同一范围内分数并列的作品发起，由该层级评委投票
    - 裁决只产出胜出名单，不修改作品的层级与状态
    """

    class Status(models.TextChoices):
        ACTIVE = "active", "投票中"
        RESOLVED = "resolved", "已裁决"

    year = models.PositiveIntegerField("年度", db_index=True)
    level = models.CharField("层级", max_length=16, choices=Level.choices)
    region = models.CharField("大区", max_length=100, null=True, blank=True)
    council = models.CharField("区县", max_length=100, null=True, blank=True)
    area_of_focus = models.CharField("领域", max_length=150, blank=True, default="")
    candidates = models.ManyToManyField("submissions.Submission", verbose_name="候选作品", related_name="tiebreaks")
    # 胜出名额
    quota = models.PositiveIntegerField("胜出名额", default=1)
    status = models.CharField("状态", max_length=16, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    # 胜出作品 id，按名次排列
    winners = models.JSONField("胜出作品", default=list, blank=True)
    # 裁决时的计票快照
    results = models.JSONField("计票结果", default=list, blank=True)
    created_by = models.ForeignKey(User, verbose_name="发起人", related_name="+", null=True, blank=True,
                                   on_delete=models.SET_NULL)
    resolved_by = models.ForeignKey(User, verbose_name="裁决人", related_name="+", null=True, blank=True,
                                    on_delete=models.SET_NULL)
    resolved_at = models.DateTimeField("裁决时间", null=True, blank=True)
    created_at = models.DateTimeField("创建时间", default=timezone.now)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["year", "level", "status"], name="tiebreak_scope_idx"),
        ]
        verbose_name = "平局裁决"
        verbose_name_plural = "平局裁决"

    def __str__(self) -> str:
        return f"{self.year} {self.level} {self.location_key} ({self.status})"

    @property
    def location_key(self) -> str:
        return build_location_key(self.level, self.region, self.council)

    @property
    def is_resolved(self) -> bool:
        return self.status == self.Status.RESOLVED


class TieBreakVote(models.Model):
    """评委投票：每位评委在一次平局裁决中只能投一票"""

    tiebreak = models.ForeignKey(TieBreaking, verbose_name="平局裁决", related_name="votes", on_delete=models.CASCADE)
    judge = models.ForeignKey(User, verbose_name="评委", related_name="tiebreak_votes", on_delete=models.CASCADE)
    submission = models.ForeignKey("submissions.Submission", verbose_name="投票作品", related_name="+",
                                   on_delete=models.CASCADE)
    voted_at = models.DateTimeField("投票时间", default=timezone.now)

    class Meta:
        ordering = ["voted_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["tiebreak", "judge"], name="uniq_tiebreak_vote_judge"),
        ]
        verbose_name = "平局投票"
        verbose_name_plural = "平局投票"

    def __str__(self) -> str:
        return f"{self.judge_id} -> {self.submission_id} ({self.tiebreak_id})"
