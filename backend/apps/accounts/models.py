"""
账户相关模型定义

- 扩展 User 模型：角色（教师/评委/管理员/超级管理员）、账户状态、所属学校与地区
- 评委额外记录评审范围：层级 + 大区 + 区县 + 擅长领域，供自动指派与评审门禁使用
"""

from __future__ import annotations

from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models

from apps.common.levels import Level


class CompetitionUserManager(UserManager):
    """自定义用户管理器：命令行创建的超管自动补齐超级管理员角色"""

    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("role", self.model.Role.SUPERADMIN)
        return super().create_superuser(username, email=email, password=password, **extra_fields)


class User(AbstractUser):
    """
    自定义用户模型：
    - 教师：提交参赛作品，接收晋级/淘汰通知
    - 评委：按 assigned_level / assigned_region / assigned_council 划定评审范围
    - 管理员：创建轮次、设置配额、发起平局裁决
    """

    class Role(models.TextChoices):
        TEACHER = "teacher", "教师"
        JUDGE = "judge", "评委"
        ADMIN = "admin", "管理员"
        SUPERADMIN = "superadmin", "超级管理员"

    class Status(models.TextChoices):
        ACTIVE = "active", "正常"
        INACTIVE = "inactive", "停用"
        SUSPENDED = "suspended", "封禁"

    # 角色
    role = models.CharField("角色", max_length=16, choices=Role.choices, default=Role.TEACHER, db_index=True)
    # 账户状态，仅 active 评委参与评审门禁与自动指派
    status = models.CharField("账户状态", max_length=16, choices=Status.choices, default=Status.ACTIVE,
                              db_index=True)
    # 联系电话
    phone = models.CharField("电话", max_length=32, blank=True)
    # 教师所属学校/地区
    school = models.CharField("学校", max_length=200, blank=True)
    region = models.CharField("大区", max_length=100, blank=True)
    council = models.CharField("区县", max_length=100, blank=True)
    # 评委评审范围
    assigned_level = models.CharField("评审层级", max_length=16, choices=Level.choices, blank=True, db_index=True)
    assigned_region = models.CharField("评审大区", max_length=100, blank=True)
    assigned_council = models.CharField("评审区县", max_length=100, blank=True)
    areas_of_focus = models.JSONField("擅长领域", default=list, blank=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    objects = CompetitionUserManager()

    class Meta(AbstractUser.Meta):  # type: ignore[misc]
        ordering = ["-date_joined"]
        verbose_name = "用户"
        verbose_name_plural = "用户"
        indexes = [
            models.Index(fields=["role", "status", "assigned_level"], name="accounts_judge_scope_idx"),
        ]

    def __str__(self) -> str:
        return self.display_name

    @property
    def display_name(self) -> str:
        """展示名：优先全名，否则回退用户名"""
        full_name = self.get_full_name()
        return full_name or self.username

    @property
    def is_judge(self) -> bool:
        return self.role == self.Role.JUDGE

    @property
    def is_admin_role(self) -> bool:
        return self.is_superuser or self.role in (self.Role.ADMIN, self.Role.SUPERADMIN)
