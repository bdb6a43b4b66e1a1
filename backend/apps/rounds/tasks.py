from __future__ import annotations

import threading
import time

from celery import shared_task
from django.conf import settings

from apps.common.infra import redis_client
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.utils.redis_keys import round_tick_lock_key

from .scheduler import RoundScheduler

logger = get_logger(__name__)

# Redis 不可用时退化为进程内互斥，至少保证单进程内 tick 不重入
_local_tick_lock = threading.Lock()


@shared_task(name="rounds.tick")
def tick_rounds() -> dict:
    """
    Celery 定时任务：推进轮次生命周期

    - 通过 Redis SET NX 锁保证同一时刻只有一个 tick 执行，锁过期时间见 ROUND_TICK_LOCK_TTL_SECONDS
    - 未抢到锁直接跳过，本次到期的轮次由下一次 tick 处理
    """
    start = time.time()
    key = round_tick_lock_key()
    ttl = int(getattr(settings, "ROUND_TICK_LOCK_TTL_SECONDS", 55))
    acquired = redis_client.acquire_lock(key, ex=ttl)
    if acquired is False:
        logger.info("已有 tick 在执行，本次跳过", extra=logger_extra({"key": key}))
        return {"skipped": True}
    if acquired is None and not _local_tick_lock.acquire(blocking=False):
        return {"skipped": True}
    try:
        summary = RoundScheduler().tick()
    finally:
        if acquired:
            redis_client.release_lock(key)
        else:
            _local_tick_lock.release()
    logger.info(
        "轮次 tick 任务完成",
        extra=logger_extra(
            {
                "ended": len(summary["ended"]),
                "closed": len(summary["closed"]),
                "waiting": len(summary["waiting"]),
                "failed": len(summary["failed"]),
                "duration_ms": int((time.time() - start) * 1000),
            }
        ),
    )
    return summary


@shared_task(name="rounds.reminders")
def send_round_reminders() -> int:
    """Celery 定时任务：按轮次提醒频率通知仍有待评作品的评委"""
    sent = RoundScheduler().send_reminders()
    if sent:
        logger.info("评审提醒任务完成", extra=logger_extra({"sent": sent}))
    return sent
