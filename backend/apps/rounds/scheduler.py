from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.db import close_old_connections

from apps.common.infra import redis_client
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.utils.redis_keys import round_reminder_key
from apps.common.utils.time import Clock, resolve_now
from apps.common.ws_utils import broadcast_round
from apps.accounts.repo import UserRepo
from apps.notifications.services import notify_evaluation_reminder

from .models import CompetitionRound
from .repo import CompetitionRoundRepo
from .services import JudgeProgressService, RoundCloseService

# 轮次调度器：到期结束、门禁通过后关闭、按频率提醒评委

logger = get_logger(__name__)

REMINDER_INTERVALS = {
    CompetitionRound.ReminderFrequency.DAILY: timedelta(hours=24),
    CompetitionRound.ReminderFrequency.TWICE_DAILY: timedelta(hours=12),
    CompetitionRound.ReminderFrequency.HOURLY: timedelta(hours=1),
}


class RoundScheduler:
    """
    轮次调度器：
    - tick：进行中且已到截止时间的轮次 CAS 置为 ended；ended 轮次尝试关闭（门禁未过则保持 ended，下次 tick 重试）
    - 每个轮次独立处理，单个轮次失败只记录日志，不影响其他轮次
    - 时钟可注入，测试时无需真实等待
    - start/stop 提供进程内后台线程；生产环境由 Celery beat 定时触发 tick
    """

    def __init__(
            self,
            clock: Optional[Clock] = None,
            interval: Optional[float] = None,
            repo: CompetitionRoundRepo | None = None,
            close_service: RoundCloseService | None = None,
            progress_service: JudgeProgressService | None = None,
    ):
        self.clock = clock
        self.interval = float(interval or getattr(settings, "ROUND_TICK_INTERVAL_SECONDS", 60))
        self.repo = repo or CompetitionRoundRepo()
        self.close_service = close_service or RoundCloseService(repo=self.repo)
        self.progress_service = progress_service or JudgeProgressService(round_repo=self.repo)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------
    # tick
    # ------------------------

    def tick(self, now: Optional[datetime] = None) -> dict:
        now = resolve_now(now, self.clock)
        summary: dict = {"ended": [], "closed": [], "waiting": [], "failed": []}

        for round_obj in self.repo.by_status(CompetitionRound.Status.ACTIVE):
            if not round_obj.is_due(now):
                continue
            try:
                self._end_round(round_obj, now, summary)
            except Exception:
                summary["failed"].append(round_obj.id)
                logger.exception("轮次到期结束失败", extra=logger_extra({"round_id": round_obj.id}))

        for round_obj in self.repo.by_status(CompetitionRound.Status.ENDED):
            if round_obj.id in summary["failed"]:
                continue
            try:
                stats = self.close_service.execute(round_obj.id, now=now, manual=False)
            except Exception:
                summary["failed"].append(round_obj.id)
                logger.exception("轮次自动关闭失败", extra=logger_extra({"round_id": round_obj.id}))
                continue
            if stats is None:
                summary["waiting"].append(round_obj.id)
            else:
                summary["closed"].append(round_obj.id)

        if any(summary.values()):
            logger.info("轮次调度 tick 完成", extra=logger_extra({key: len(value) for key, value in summary.items()}))
        return summary

    def _end_round(self, round_obj: CompetitionRound, now: datetime, summary: dict) -> None:
        # CAS：只有仍处于 active 的轮次才会被置为 ended，并发 tick 只有一个生效
        updated = self.repo.filter(pk=round_obj.pk, status=CompetitionRound.Status.ACTIVE).update(
            status=CompetitionRound.Status.ENDED,
            ended_at=now,
            updated_at=now,
        )
        if not updated:
            return
        summary["ended"].append(round_obj.id)
        logger.info(
            "轮次已到期结束",
            extra=logger_extra({"round_id": round_obj.id, "end_time": round_obj.effective_end_time()}),
        )
        broadcast_round(round_obj.id, {"event": "round_ended", "round_id": round_obj.id, "ended_at": now.isoformat()})

    # ------------------------
    # 评审提醒
    # ------------------------

    def send_reminders(self, now: Optional[datetime] = None) -> int:
        """
        按轮次提醒频率向仍有待评作品的评委发送提醒
        - 同一轮次同一时间桶通过 Redis 锁与通知去重键保证只发一次
        """
        now = resolve_now(now, self.clock)
        sent = 0
        rounds = self.repo.by_status(CompetitionRound.Status.ACTIVE).filter(reminder_enabled=True)
        for round_obj in rounds:
            interval = REMINDER_INTERVALS.get(
                round_obj.reminder_frequency, REMINDER_INTERVALS[CompetitionRound.ReminderFrequency.DAILY]
            )
            if round_obj.last_reminder_at is not None and now - round_obj.last_reminder_at < interval:
                continue
            bucket = str(int(now.timestamp() // interval.total_seconds()))
            key = round_reminder_key(round_obj.id, bucket)
            if redis_client.acquire_lock(key, ex=int(interval.total_seconds())) is False:
                continue
            try:
                sent += self._remind_round(round_obj, bucket)
                self.repo.update(round_obj, {"last_reminder_at": now})
            except Exception:
                logger.exception("评审提醒发送失败", extra=logger_extra({"round_id": round_obj.id}))
        return sent

    def _remind_round(self, round_obj: CompetitionRound, bucket: str) -> int:
        progress = self.progress_service.execute(round_obj)
        judges = {judge.id: judge for judge in UserRepo().active_judges().filter(
            pk__in=[item["judge_id"] for item in progress["judges"] if item["pending"]]
        )}
        sent = 0
        for item in progress["judges"]:
            judge = judges.get(item["judge_id"])
            if judge is None:
                continue
            notify_evaluation_reminder(
                judge,
                pending_count=item["pending"],
                level=round_obj.level,
                round_id=round_obj.id,
                bucket=bucket,
            )
            sent += 1
        return sent

    # ------------------------
    # 后台线程
    # ------------------------

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def wait(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="round-scheduler", daemon=True)
        self._thread.start()
        logger.info("轮次调度器已启动", extra=logger_extra({"interval": self.interval}))

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("轮次调度器已停止")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            started = time.monotonic()
            close_old_connections()
            try:
                self.tick()
                self.send_reminders()
            except Exception:
                logger.exception("轮次调度循环异常")
            finally:
                close_old_connections()
            elapsed = time.monotonic() - started
            self._stop_event.wait(max(0.0, self.interval - elapsed))
