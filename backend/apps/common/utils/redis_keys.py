# apps/common/utils/redis_keys.py

from __future__ import annotations

"""
Redis 键名集中管理，避免各模块随意拼接带来不一致
业务场景：排行榜缓存、轮次调度锁、评委提醒节流等公用键
"""

LEADERBOARD_PREFIX = "leaderboard:"


def leaderboard_key(year: int, area_of_focus: str, level: str, location_key: str) -> str:
    """排行榜快照缓存键（年度 + 领域 + 层级 + 地区键）"""
    return f"{LEADERBOARD_PREFIX}{year}:{level}:{location_key}:{area_of_focus}"


def leaderboard_scope_prefix(year: int, level: str) -> str:
    """某年度某层级全部排行榜缓存的前缀，用于批量失效"""
    return f"{LEADERBOARD_PREFIX}{year}:{level}:"


def round_tick_lock_key() -> str:
    """轮次调度 tick 互斥锁，保证同一时刻仅有一个 tick 在执行"""
    return "rounds:tick:lock"


def round_reminder_key(round_id: int, bucket: str) -> str:
    """评委提醒节流键：同一轮次同一时间桶只提醒一次"""
    return f"rounds:{round_id}:reminder:{bucket}"
