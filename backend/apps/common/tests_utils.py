from __future__ import annotations

import itertools
from datetime import timedelta
from typing import Optional

from django.utils import timezone
from rest_framework.test import APIClient

from apps.accounts.models import User
from apps.common.levels import Level
from apps.leaderboards.models import Quota
from apps.submissions.models import Evaluation, Submission, SubmissionAssignment

# 测试工具：造数函数与认证客户端，减少各测试用例的重复代码

YEAR = 2025
_seq = itertools.count(1)

# 单元测试默认关闭 Redis，缓存/锁走降级分支
TEST_SETTINGS = {
    "REDIS_ENABLED": False,
    "CACHES": {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "competition-tests",
        }
    },
    "CHANNEL_LAYERS": {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}},
}


def make_user(role: str = User.Role.TEACHER, **kwargs) -> User:
    n = next(_seq)
    kwargs.setdefault("username", f"{role}{n}")
    kwargs.setdefault("email", f"{role}{n}@example.com")
    kwargs.setdefault("password", "Pass1234")
    return User.objects.create_user(role=role, **kwargs)


def make_admin(**kwargs) -> User:
    return make_user(User.Role.ADMIN, **kwargs)


def make_judge(level: str = Level.COUNCIL, region: str = "North", council: Optional[str] = "Alpha", **kwargs) -> User:
    """按层级构造评委评审范围：Regional 不限区县，National 不限地区"""
    if level == Level.NATIONAL:
        region, council = "", ""
    elif level == Level.REGIONAL:
        council = ""
    return make_user(
        User.Role.JUDGE,
        assigned_level=level,
        assigned_region=region or "",
        assigned_council=council or "",
        **kwargs,
    )


def make_submission(
        *,
        teacher: Optional[User] = None,
        year: int = YEAR,
        level: str = Level.COUNCIL,
        region: str = "North",
        council: Optional[str] = "Alpha",
        area_of_focus: str = "Mathematics",
        status: str = Submission.Status.SUBMITTED,
        created_offset_minutes: int = 0,
        **kwargs,
) -> Submission:
    """created_offset_minutes 控制提交先后，数值越小越早"""
    teacher = teacher or make_user()
    return Submission.objects.create(
        teacher=teacher,
        teacher_name=kwargs.pop("teacher_name", teacher.username),
        year=year,
        level=level,
        region=region,
        council=council,
        area_of_focus=area_of_focus,
        status=status,
        created_at=timezone.now() - timedelta(days=1) + timedelta(minutes=created_offset_minutes),
        **kwargs,
    )


def score_submission(submission: Submission, judge: User, score: float) -> Evaluation:
    """
    直接写入一条当前层级评分并同步作品缓存分数（绕过轮次校验，用于构造排名场景）
    """
    evaluation = Evaluation.objects.create(
        submission=submission,
        judge=judge,
        level=submission.level,
        scores={"overall": score},
        total_score=score,
        average_score=score,
    )
    scores = [item.average_score for item in Evaluation.objects.filter(submission=submission, level=submission.level)]
    submission.average_score = round(sum(scores) / len(scores), 2)
    if submission.status not in Submission.TERMINAL_STATUSES:
        submission.status = Submission.Status.EVALUATED
    submission.save(update_fields=["average_score", "status", "updated_at"])
    return evaluation


def assign(submission: Submission, judge: User) -> SubmissionAssignment:
    return SubmissionAssignment.objects.create(
        submission=submission,
        judge=judge,
        level=submission.level,
        region=submission.region,
        council=submission.council if submission.level == Level.COUNCIL else None,
    )


def set_quota(level: str = Level.COUNCIL, quota: int = 3, year: int = YEAR) -> Quota:
    return Quota.objects.update_or_create(year=year, level=level, defaults={"quota": quota})[0]


class AuthenticatedAPIMixin:
    """
    接口测试：使用 force_authenticate 直接以指定身份发起请求，跳过登录流程
    """

    def auth_client(self, user: User) -> APIClient:
        client = APIClient()
        client.raise_request_exception = False
        client.force_authenticate(user=user)
        return client
