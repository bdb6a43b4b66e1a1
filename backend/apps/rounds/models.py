from __future__ import annotations

from datetime import datetime
from typing import Optional

from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.common.levels import Level

# 模型文件：比赛轮次的调度配置与生命周期状态，不承载业务流程

User = settings.AUTH_USER_MODEL


class CompetitionRound(models.Model):
    """
    比赛轮次：
    - 针对 (年度, 层级, 可选大区, 可选区县) 的调度单元，region/council 为空表示全国范围
    - 状态线性流转 pending → active → ended → closed，仅由轮次服务修改，从不删除
    """

    class TimingType(models.TextChoices):
        FIXED_TIME = "fixed_time", "固定截止时间"
        COUNTDOWN = "countdown", "倒计时"

    class Status(models.TextChoices):
        PENDING = "pending", "未开始"
        ACTIVE = "active", "进行中"
        ENDED = "ended", "已结束待关闭"
        CLOSED = "closed", "已关闭"

    class ReminderFrequency(models.TextChoices):
        DAILY = "daily", "每天"
        TWICE_DAILY = "twice_daily", "每天两次"
        HOURLY = "hourly", "每小时"

    class Visibility(models.TextChoices):
        LIVE = "live", "实时"
        FROZEN = "frozen", "冻结"

    year = models.PositiveIntegerField("年度", db_index=True)
    level = models.CharField("层级", max_length=16, choices=Level.choices)
    region = models.CharField("大区", max_length=100, null=True, blank=True)
    council = models.CharField("区县", max_length=100, null=True, blank=True)
    status = models.CharField("状态", max_length=16, choices=Status.choices, default=Status.PENDING, db_index=True)
    # 计时方式
    timing_type = models.CharField("计时方式", max_length=16, choices=TimingType.choices)
    # 固定截止时间；倒计时轮次在激活时按 start_time + countdown_duration 重算
    end_time = models.DateTimeField("截止时间", null=True, blank=True)
    # 激活时写入；早于该时间的评分不计入本轮门禁
    start_time = models.DateTimeField("开始时间", null=True, blank=True)
    countdown_duration = models.DurationField("倒计时时长", null=True, blank=True)
    # 到期后自动执行晋级
    auto_advance = models.BooleanField("自动晋级", default=True)
    # 关闭前需全部评委完成评审
    wait_for_all_judges = models.BooleanField("等待评委完成", default=True)
    # 评审提醒
    reminder_enabled = models.BooleanField("启用提醒", default=True)
    reminder_frequency = models.CharField("提醒频率", max_length=16, choices=ReminderFrequency.choices,
                                          default=ReminderFrequency.DAILY)
    last_reminder_at = models.DateTimeField("上次提醒时间", null=True, blank=True)
    # 排行榜可见性：实时 / 冻结快照
    leaderboard_visibility = models.CharField("排行榜可见性", max_length=8, choices=Visibility.choices,
                                              default=Visibility.LIVE)
    frozen_snapshot = models.JSONField("冻结快照", null=True, blank=True)
    # 激活时待评作品快照
    pending_submissions_snapshot = models.JSONField("待评作品快照", default=list, blank=True)
    snapshot_created_at = models.DateTimeField("快照时间", null=True, blank=True)
    metadata = models.JSONField("附加信息", default=dict, blank=True)
    ended_at = models.DateTimeField("实际结束时间", null=True, blank=True)
    closed_at = models.DateTimeField("关闭时间", null=True, blank=True)
    closed_by = models.ForeignKey(User, verbose_name="关闭人", related_name="+", null=True, blank=True,
                                  on_delete=models.SET_NULL)
    created_by = models.ForeignKey(User, verbose_name="创建人", related_name="+", null=True, blank=True,
                                   on_delete=models.SET_NULL)
    created_at = models.DateTimeField("创建时间", default=timezone.now)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["year", "level", "status"], name="round_year_level_status_idx"),
            models.Index(fields=["year", "level", "region", "council"], name="round_scope_idx"),
            models.Index(fields=["status", "end_time"], name="round_status_end_idx"),
        ]
        verbose_name = "比赛轮次"
        verbose_name_plural = "比赛轮次"

    def __str__(self) -> str:
        location = "/".join(part for part in (self.region, self.council) if part) or "全国"
        return f"{self.year} {self.level} {location} ({self.status})"

    def effective_end_time(self) -> Optional[datetime]:
        """实际截止时间：固定时间取 end_time；倒计时取 (start_time 或创建时间) + 时长"""
        if self.timing_type == self.TimingType.COUNTDOWN and self.countdown_duration is not None:
            start = self.start_time or self.created_at
            return start + self.countdown_duration
        return self.end_time

    def is_due(self, now: datetime) -> bool:
        """进行中且已过截止时间"""
        end = self.effective_end_time()
        return self.status == self.Status.ACTIVE and end is not None and now >= end

    def time_remaining(self, now: datetime) -> Optional[float]:
        if self.status != self.Status.ACTIVE:
            return None
        end = self.effective_end_time()
        if end is None:
            return None
        return max(0.0, (end - now).total_seconds())
