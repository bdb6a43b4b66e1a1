from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class Notification(models.Model):
    """
    系统通知模型：
    - 针对用户的私有通知（晋级/淘汰结果、评审指派、评审提醒等）
    - 关联对象只记录在 payload 中（submission_id / round_id），不与业务表强耦合
    """

    class Type(models.TextChoices):
        # 教师
        SUBMISSION_PROMOTED = "submission_promoted", "作品晋级"
        SUBMISSION_ELIMINATED = "submission_eliminated", "作品未晋级"
        # 评委
        JUDGE_ASSIGNED = "judge_assigned", "评审指派"
        EVALUATION_REMINDER = "evaluation_reminder", "评审提醒"
        # 管理员
        ROUND_CLOSED = "round_closed", "轮次关闭"

    user = models.ForeignKey(User, verbose_name="接收用户", related_name="notifications", on_delete=models.CASCADE)
    type = models.CharField("通知类型", max_length=64, choices=Type.choices)
    title = models.CharField("标题", max_length=200)
    body = models.TextField("正文", blank=True, default="")
    payload = models.JSONField("附加数据", default=dict, blank=True)
    dedup_key = models.CharField("去重键", max_length=255, blank=True, default="", db_index=True)
    read_at = models.DateTimeField("已读时间", null=True, blank=True)
    created_at = models.DateTimeField("创建时间", auto_now_add=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "通知"
        verbose_name_plural = "通知"
        indexes = [
            models.Index(fields=["user", "read_at"], name="notif_user_read_idx"),
            models.Index(fields=["user", "type", "created_at"], name="notif_user_type_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "dedup_key"],
                condition=~Q(dedup_key=""),
                name="uniq_notification_user_dedup_key",
            )
        ]

    def __str__(self) -> str:
        return f"{self.get_type_display()} - {self.title}"

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def mark_read(self) -> None:
        if self.read_at:
            return
        self.read_at = timezone.now()
        self.save(update_fields=["read_at"])
