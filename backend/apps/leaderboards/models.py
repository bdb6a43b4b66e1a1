from __future__ import annotations

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from apps.common.levels import Level

# 模型定义：晋级配额、排行榜快照与榜单条目

User = settings.AUTH_USER_MODEL


class Quota(models.Model):
    """
    晋级配额：每个 (年度, 层级) 一条
    - 每个排名分组（领域 × 地区）最多晋级 quota 份作品
    - 缺失配额时晋级流程直接拒绝，不会按 0 处理
    """

    year = models.PositiveIntegerField("年度", validators=[MinValueValidator(2020), MaxValueValidator(2030)])
    level = models.CharField("层级", max_length=16, choices=Level.choices)
    quota = models.PositiveIntegerField("晋级名额", validators=[MinValueValidator(1), MaxValueValidator(10000)])
    created_by = models.ForeignKey(User, verbose_name="设置人", related_name="+", null=True, blank=True,
                                   on_delete=models.SET_NULL)
    created_at = models.DateTimeField("创建时间", auto_now_add=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["-year", "level"]
        constraints = [
            models.UniqueConstraint(fields=["year", "level"], name="uniq_quota_year_level"),
        ]
        verbose_name = "晋级配额"
        verbose_name_plural = "晋级配额"

    def __str__(self) -> str:
        return f"{self.year} {self.level}: {self.quota}"


class Leaderboard(models.Model):
    """
    排行榜快照：一个 (年度, 领域, 层级, 地区键) 一份
    - 条目整体替换，名次稠密连续 1..N
    - 轮次关闭后 is_finalized 永久为 True，不再重算
    """

    year = models.PositiveIntegerField("年度", db_index=True)
    area_of_focus = models.CharField("领域", max_length=150)
    level = models.CharField("层级", max_length=16, choices=Level.choices)
    location_key = models.CharField("地区键", max_length=220)
    total_submissions = models.PositiveIntegerField("上榜作品数", default=0)
    # 构建时的配额快照
    quota = models.PositiveIntegerField("配额快照", null=True, blank=True)
    is_finalized = models.BooleanField("已定榜", default=False)
    finalized_at = models.DateTimeField("定榜时间", null=True, blank=True)
    last_updated = models.DateTimeField("最近重算时间", default=timezone.now)

    class Meta:
        ordering = ["year", "level", "location_key", "area_of_focus"]
        constraints = [
            models.UniqueConstraint(
                fields=["year", "area_of_focus", "level", "location_key"], name="uniq_leaderboard_scope"
            ),
        ]
        indexes = [
            models.Index(fields=["year", "level", "location_key"], name="leaderboard_location_idx"),
        ]
        verbose_name = "排行榜"
        verbose_name_plural = "排行榜"

    def __str__(self) -> str:
        return f"{self.year} {self.level} {self.location_key} / {self.area_of_focus}"


class LeaderboardEntry(models.Model):
    """排行榜条目：作品在某个排名分组中的名次快照"""

    class Status(models.TextChoices):
        EVALUATED = "evaluated", "已评分"
        PROMOTED = "promoted", "已晋级"
        ELIMINATED = "eliminated", "已淘汰"

    TERMINAL_STATUSES = (Status.PROMOTED, Status.ELIMINATED)

    leaderboard = models.ForeignKey(Leaderboard, verbose_name="排行榜", related_name="entries",
                                    on_delete=models.CASCADE)
    submission = models.ForeignKey("submissions.Submission", verbose_name="作品", related_name="leaderboard_entries",
                                   on_delete=models.CASCADE)
    teacher = models.ForeignKey(User, verbose_name="教师", related_name="+", on_delete=models.CASCADE)
    teacher_name = models.CharField("教师姓名", max_length=120, blank=True)
    school = models.CharField("学校", max_length=200, blank=True)
    region = models.CharField("大区", max_length=100, blank=True)
    council = models.CharField("区县", max_length=100, blank=True, null=True)
    category = models.CharField("类别", max_length=100, blank=True)
    class_level = models.CharField("年级", max_length=100, blank=True)
    subject = models.CharField("学科", max_length=100, blank=True)
    area_of_focus = models.CharField("领域", max_length=150)
    rank = models.PositiveIntegerField("名次")
    average_score = models.FloatField("平均分", default=0)
    total_evaluations = models.PositiveIntegerField("评分数", default=0)
    submission_created_at = models.DateTimeField("作品提交时间")
    status = models.CharField("状态", max_length=16, choices=Status.choices, default=Status.EVALUATED)

    class Meta:
        ordering = ["leaderboard", "rank"]
        constraints = [
            models.UniqueConstraint(fields=["leaderboard", "submission"], name="uniq_leaderboard_entry_submission"),
        ]
        verbose_name = "榜单条目"
        verbose_name_plural = "榜单条目"

    def __str__(self) -> str:
        return f"#{self.rank} {self.teacher_name} ({self.average_score})"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES
