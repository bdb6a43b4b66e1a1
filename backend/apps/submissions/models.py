from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.common.levels import Level

# 模型定义：参赛作品、评委评分与一对一评审指派

User = settings.AUTH_USER_MODEL


class Submission(models.Model):
    """
    参赛作品：
    - 一位教师在某年度、某领域/年级/学科下的一份作品
    - level/status/average_score 仅由评分、分数重算与晋级事务修改，核心流程从不删除作品
    """

    class Status(models.TextChoices):
        PENDING = "pending", "待提交"
        SUBMITTED = "submitted", "已提交"
        UNDER_REVIEW = "under_review", "评审中"
        EVALUATED = "evaluated", "已评分"
        APPROVED = "approved", "已通过"
        PROMOTED = "promoted", "已晋级"
        ELIMINATED = "eliminated", "已淘汰"

    # 已评分及之后的状态：可以进入排行榜
    RANKABLE_STATUSES = (Status.EVALUATED, Status.APPROVED, Status.PROMOTED, Status.ELIMINATED)
    # 当前层级的终态：晋级后层级已变更，淘汰后不再参与该层级
    TERMINAL_STATUSES = (Status.PROMOTED, Status.ELIMINATED)

    # 参赛教师
    teacher = models.ForeignKey(User, verbose_name="教师", related_name="submissions", on_delete=models.CASCADE)
    # 教师姓名快照
    teacher_name = models.CharField("教师姓名", max_length=120, blank=True)
    # 学校
    school = models.CharField("学校", max_length=200, blank=True)
    # 地区（Council 以上层级 council 可为空）
    region = models.CharField("大区", max_length=100, db_index=True)
    council = models.CharField("区县", max_length=100, blank=True, null=True, db_index=True)
    # 年度
    year = models.PositiveIntegerField("年度", db_index=True)
    # 类别 / 年级 / 学科 / 领域
    category = models.CharField("类别", max_length=100, blank=True)
    class_level = models.CharField("年级", max_length=100, blank=True)
    subject = models.CharField("学科", max_length=100, blank=True)
    area_of_focus = models.CharField("领域", max_length=150, db_index=True)
    # 当前层级
    level = models.CharField("层级", max_length=16, choices=Level.choices, default=Level.COUNCIL, db_index=True)
    # 状态
    status = models.CharField("状态", max_length=20, choices=Status.choices, default=Status.SUBMITTED,
                              db_index=True)
    # 缓存的平均分（保留两位小数）
    average_score = models.FloatField("平均分", default=0)
    # 取消资格为永久标记
    disqualified = models.BooleanField("已取消资格", default=False, db_index=True)
    disqualification_reason = models.TextField("取消资格原因", blank=True, default="")
    disqualified_by = models.ForeignKey(User, verbose_name="取消资格操作人", related_name="+", null=True,
                                        blank=True, on_delete=models.SET_NULL)
    disqualified_at = models.DateTimeField("取消资格时间", null=True, blank=True)
    # 创建时间：排名并列时先提交者优先
    created_at = models.DateTimeField("提交时间", default=timezone.now, db_index=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["year", "level", "region", "council"], name="subm_scope_idx"),
            models.Index(fields=["year", "level", "area_of_focus"], name="subm_area_idx"),
        ]
        verbose_name = "参赛作品"
        verbose_name_plural = "参赛作品"

    def __str__(self) -> str:
        return f"{self.teacher_name or self.teacher_id} - {self.area_of_focus} ({self.level})"


class Evaluation(models.Model):
    """
    评委评分：
    - 一位评委对一份作品仅能评分一次
    - level 记录评分时作品所在层级，分数汇总只统计当前层级的评分
    """

    submission = models.ForeignKey(Submission, verbose_name="作品", related_name="evaluations",
                                   on_delete=models.CASCADE)
    judge = models.ForeignKey(User, verbose_name="评委", related_name="evaluations", on_delete=models.CASCADE)
    # 评分时作品所处层级
    level = models.CharField("评分层级", max_length=16, choices=Level.choices, db_index=True)
    # 各评分项分数：{"criterion": score}
    scores = models.JSONField("分项得分", default=dict)
    total_score = models.FloatField("总分", default=0)
    average_score = models.FloatField("平均分", default=0)
    comments = models.TextField("评语", blank=True, default="")
    submitted_at = models.DateTimeField("提交时间", default=timezone.now)
    created_at = models.DateTimeField("创建时间", default=timezone.now, db_index=True)

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["submission", "judge"], name="uniq_evaluation_submission_judge"),
        ]
        verbose_name = "评分"
        verbose_name_plural = "评分"

    def __str__(self) -> str:
        return f"{self.judge_id} -> {self.submission_id}: {self.average_score}"


class SubmissionAssignment(models.Model):
    """
    一对一评审指派（Council/Regional）：
    - 每份作品仅保留当前层级的指派；晋级后改派到新层级评委
    - National 采用全体评委交叉评审，不写入指派
    """

    submission = models.OneToOneField(Submission, verbose_name="作品", related_name="assignment",
                                      on_delete=models.CASCADE)
    judge = models.ForeignKey(User, verbose_name="评委", related_name="assignments", on_delete=models.CASCADE)
    level = models.CharField("层级", max_length=16, choices=Level.choices, db_index=True)
    region = models.CharField("大区", max_length=100, db_index=True)
    council = models.CharField("区县", max_length=100, blank=True, null=True)
    assigned_at = models.DateTimeField("指派时间", default=timezone.now)
    judge_notified = models.BooleanField("已通知评委", default=False)

    class Meta:
        ordering = ["-assigned_at"]
        indexes = [
            models.Index(fields=["level", "region", "council"], name="assign_scope_idx"),
        ]
        verbose_name = "评审指派"
        verbose_name_plural = "评审指派"

    def __str__(self) -> str:
        return f"{self.submission_id} -> {self.judge_id} ({self.level})"
