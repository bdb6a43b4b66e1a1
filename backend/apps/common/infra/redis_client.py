"""
Redis 客户端封装：
- 统一读取 settings 中的 Redis 配置，提供 get/set/json 存取、分布式锁与按前缀清理
- Redis 未启用或不可用时记录警告并返回空值，由上层回退到数据库/进程内逻辑
"""

from __future__ import annotations

import json
import os
from typing import Any, Optional

import redis
from django.conf import settings

from apps.common.infra.logger import get_logger

_logger = get_logger(__name__)

_pool: Optional[redis.ConnectionPool] = None


def is_enabled() -> bool:
    """settings.REDIS_ENABLED 为 False 时（如单元测试）完全跳过 Redis"""
    return bool(getattr(settings, "REDIS_ENABLED", True))


def _get_client() -> Optional[redis.Redis]:
    """
    获取 Redis 客户端；未启用时返回 None
    - 连接池按进程复用，连接失败在具体命令执行时暴露
    """
    global _pool
    if not is_enabled():
        return None
    if _pool is None:
        _pool = redis.ConnectionPool(
            host=getattr(settings, "REDIS_HOST", "127.0.0.1"),
            port=int(getattr(settings, "REDIS_PORT", 6379)),
            db=int(getattr(settings, "REDIS_DB_CACHE", 0)),
            password=os.getenv("REDIS_PASSWORD") or None,
            decode_responses=True,
            socket_connect_timeout=float(os.getenv("REDIS_CONNECT_TIMEOUT", 0.2)),
            socket_timeout=float(os.getenv("REDIS_SOCKET_TIMEOUT", 0.5)),
        )
    return redis.Redis(connection_pool=_pool)


def set(key: str, value: Any, ex: Optional[int] = None) -> None:
    """设置键值，可选过期时间（秒）"""
    client = _get_client()
    if client is None:
        return
    try:
        client.set(key, value, ex=ex)
    except redis.RedisError:
        _logger.warning("Redis 写入失败，已跳过", extra={"key": key}, exc_info=True)


def get(key: str) -> Optional[Any]:
    """获取键值，若过期或不存在返回 None"""
    client = _get_client()
    if client is None:
        return None
    try:
        return client.get(key)
    except redis.RedisError:
        _logger.warning("Redis 读取失败，已跳过", extra={"key": key}, exc_info=True)
        return None


def delete(key: str) -> None:
    """删除键，失败时跳过"""
    client = _get_client()
    if client is None:
        return
    try:
        client.delete(key)
    except redis.RedisError:
        _logger.warning("Redis 删除键失败，已跳过", extra={"key": key})


def delete_prefix(prefix: str) -> int:
    """
    按前缀批量删除（SCAN 迭代，避免 KEYS 阻塞）
    - 用于排行榜缓存整体失效
    """
    client = _get_client()
    if client is None:
        return 0
    removed = 0
    try:
        for key in client.scan_iter(match=f"{prefix}*", count=200):
            removed += int(client.delete(key))
    except redis.RedisError:
        _logger.warning("Redis 按前缀删除失败，已跳过", extra={"prefix": prefix})
    return removed


def acquire_lock(key: str, *, ex: Optional[int] = None) -> Optional[bool]:
    """
    使用 SET NX 获取分布式锁
    - 返回 True/False 表示是否抢到锁；Redis 不可用时返回 None，由调用方决定回退策略
    """
    client = _get_client()
    if client is None:
        return None
    try:
        return bool(client.set(key, "1", nx=True, ex=ex))
    except redis.RedisError:
        _logger.warning("Redis 加锁失败", extra={"key": key}, exc_info=True)
        return None


def release_lock(key: str) -> None:
    """释放分布式锁，失败时跳过（锁自带过期时间）"""
    delete(key)


def set_json(key: str, data: Any, ex: Optional[int] = None) -> None:
    """以 JSON 序列化存储数据，方便结构化缓存"""
    set(key, json.dumps(data, default=str), ex=ex)


def get_json(key: str) -> Optional[Any]:
    """获取 JSON 数据并反序列化，失败返回 None"""
    raw = get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None
