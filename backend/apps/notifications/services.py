from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Optional

from django.utils import timezone

from apps.common.base.base_service import BaseService
from apps.common.exceptions import NotFoundError
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.ws_utils import broadcast_notify

from .models import Notification
from .repo import NotificationRepo

logger = get_logger(__name__)


def serialize_notification(notification: Notification) -> dict:
    """通知序列化：用于列表/推送"""
    return {
        "id": getattr(notification, "id", None),
        "type": notification.type,
        "title": notification.title,
        "body": notification.body,
        "payload": notification.payload or {},
        "read_at": notification.read_at,
        "created_at": notification.created_at,
    }


def _normalize_payload(value: Any) -> Any:
    """将 payload 中的 datetime/date 转为字符串，避免 JSONField 序列化失败"""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_normalize_payload(v) for v in value]
    if isinstance(value, dict):
        return {k: _normalize_payload(v) for k, v in value.items()}
    return value


def build_dedup_key(
        *,
        type: str,
        submission_id: Optional[int] = None,
        round_id: Optional[int] = None,
        level: Optional[str] = None,
        bucket: Optional[str] = None,
) -> str:
    """构造去重键：按类型 + 关联作品/轮次/层级 + 时间桶"""
    parts = [f"type:{type}"]
    if submission_id is not None:
        parts.append(f"submission:{submission_id}")
    if round_id is not None:
        parts.append(f"round:{round_id}")
    if level:
        parts.append(f"level:{level}")
    if bucket:
        parts.append(f"bucket:{bucket}")
    return "|".join(parts)


class NotificationCreateService(BaseService[Notification]):
    """
    创建/刷新通知服务：
    - 支持 dedup_key 去重，命中时更新内容并重置已读状态
    - 只承担写入，推送由 create_and_push_notification 处理
    """

    atomic_enabled = False

    def __init__(self, repo: NotificationRepo | None = None):
        self.repo = repo or NotificationRepo()

    def perform(
            self,
            user,
            *,
            type: str,
            title: str,
            body: str | None = None,
            payload: dict | None = None,
            dedup_key: str | None = None,
    ) -> Notification:
        data = {
            "type": type,
            "title": title,
            "body": body or "",
            "payload": _normalize_payload(payload or {}),
        }
        existing = self.repo.get_by_dedup(user=user, dedup_key=dedup_key or "")
        if existing:
            data["read_at"] = None
            return self.repo.update(existing, data)
        data.update({"user": user, "dedup_key": dedup_key or ""})
        return self.repo.create(data)


class NotificationMarkReadService(BaseService[Notification]):
    """标记单条通知已读"""

    def __init__(self, repo: NotificationRepo | None = None):
        self.repo = repo or NotificationRepo()

    def perform(self, user, notification_id: int) -> Notification:
        notif = self.repo.get_or_none(pk=notification_id, user=user)
        if notif is None:
            raise NotFoundError(message="通知不存在")
        notif.mark_read()
        return notif


class NotificationMarkAllReadService(BaseService[int]):
    """标记当前用户所有通知为已读（可限定通知类型），返回更新条数"""

    def __init__(self, repo: NotificationRepo | None = None):
        self.repo = repo or NotificationRepo()

    def perform(self, user, type: str | None = None) -> int:
        return self.repo.mark_all_read(user, type=type)


def create_and_push_notification(
        user,
        *,
        type: str,
        title: str,
        body: str | None = None,
        payload: dict | None = None,
        dedup_key: str | None = None,
        repo: NotificationRepo | None = None,
) -> Notification:
    """创建通知并通过用户频道推送一份（推送失败由 ws_utils 记录并忽略）"""
    notif = NotificationCreateService(repo=repo).execute(
        user,
        type=type,
        title=title,
        body=body,
        payload=payload,
        dedup_key=dedup_key,
    )
    broadcast_notify(getattr(user, "id", None), {"event": "notification", **serialize_notification(notif)})
    return notif


def fanout_notifications(
        users: Iterable,
        *,
        type: str,
        title: str,
        body: str | None = None,
        payload: dict | None = None,
        dedup_key: str | None = None,
) -> list[Notification]:
    """向一组用户发送同样的通知，复用同一 dedup_key（可选）"""
    repo = NotificationRepo()
    return [
        create_and_push_notification(
            user, type=type, title=title, body=body, payload=payload, dedup_key=dedup_key, repo=repo
        )
        for user in users
    ]


# ------------------------
# 领域通知
# ------------------------

def notify_submission_promoted(submission, *, new_level: str, rank: int | None, total_in_group: int) -> Notification:
    """晋级通知：payload 携带作品、新层级、名次、平均分与组内总数"""
    payload = {
        "submission_id": submission.id,
        "new_level": new_level,
        "rank": rank,
        "average_score": submission.average_score,
        "total_in_group": total_in_group,
    }
    return create_and_push_notification(
        submission.teacher,
        type=Notification.Type.SUBMISSION_PROMOTED,
        title="恭喜，作品已晋级",
        body=f"你的作品（{submission.area_of_focus}）已晋级至 {new_level}，组内排名第 {rank} / {total_in_group}。",
        payload=payload,
        dedup_key=build_dedup_key(
            type=Notification.Type.SUBMISSION_PROMOTED, submission_id=submission.id, level=new_level
        ),
    )


def notify_submission_eliminated(submission, *, rank: int | None, total_in_group: int) -> Notification:
    """淘汰通知"""
    payload = {
        "submission_id": submission.id,
        "eliminated": True,
        "level": submission.level,
        "rank": rank,
        "average_score": submission.average_score,
        "total_in_group": total_in_group,
    }
    return create_and_push_notification(
        submission.teacher,
        type=Notification.Type.SUBMISSION_ELIMINATED,
        title="作品评审结果",
        body=f"你的作品（{submission.area_of_focus}）未能晋级，组内排名第 {rank} / {total_in_group}，感谢参与。",
        payload=payload,
        dedup_key=build_dedup_key(
            type=Notification.Type.SUBMISSION_ELIMINATED, submission_id=submission.id, level=submission.level
        ),
    )


def notify_judge_assigned(assignment) -> Notification:
    """评审指派通知"""
    submission = assignment.submission
    return create_and_push_notification(
        assignment.judge,
        type=Notification.Type.JUDGE_ASSIGNED,
        title="新的评审任务",
        body=f"你被指派评审 {submission.teacher_name} 的作品（{submission.subject} / {submission.area_of_focus}）。",
        payload={
            "submission_id": submission.id,
            "level": assignment.level,
            "region": assignment.region,
            "council": assignment.council,
        },
        dedup_key=build_dedup_key(
            type=Notification.Type.JUDGE_ASSIGNED, submission_id=submission.id, level=assignment.level
        ),
    )


def notify_evaluation_reminder(judge, *, pending_count: int, level: str, round_id: int, bucket: str) -> Notification:
    """评审提醒：同一轮次同一时间桶只保留一条"""
    logger.info(
        "发送评审提醒",
        extra=logger_extra({"judge_id": judge.id, "round_id": round_id, "pending": pending_count}),
    )
    return create_and_push_notification(
        judge,
        type=Notification.Type.EVALUATION_REMINDER,
        title="待评审作品提醒",
        body=f"你在 {level} 层级还有 {pending_count} 份作品待评审，请在轮次结束前完成。",
        payload={"pending_count": pending_count, "level": level, "round_id": round_id},
        dedup_key=build_dedup_key(type=Notification.Type.EVALUATION_REMINDER, round_id=round_id, bucket=bucket),
    )


def notify_round_closed(users: Iterable, *, round_id: int, level: str, stats: dict) -> list[Notification]:
    """轮次关闭后通知管理员晋级统计"""
    return fanout_notifications(
        users,
        type=Notification.Type.ROUND_CLOSED,
        title=f"{level} 轮次已关闭",
        body=f"晋级 {stats.get('promoted', 0)} 份，淘汰 {stats.get('eliminated', 0)} 份。",
        payload={"round_id": round_id, "level": level, **stats, "closed_at": timezone.now()},
        dedup_key=build_dedup_key(type=Notification.Type.ROUND_CLOSED, round_id=round_id),
    )


def notify_custom_reminder(judges: Iterable, *, round_obj, message: str, sender=None) -> list[Notification]:
    """管理员手动提醒：每次都是新通知，不去重"""
    judges = list(judges)
    logger.info(
        "发送手动评审提醒",
        extra=logger_extra(
            {
                "round_id": round_obj.id,
                "judge_ids": [judge.id for judge in judges],
                "sender_id": getattr(sender, "id", None),
            }
        ),
    )
    return fanout_notifications(
        judges,
        type=Notification.Type.EVALUATION_REMINDER,
        title="评审提醒",
        body=message,
        payload={
            "round_id": round_obj.id,
            "level": round_obj.level,
            "year": round_obj.year,
            "message": message,
            "custom": True,
        },
    )
