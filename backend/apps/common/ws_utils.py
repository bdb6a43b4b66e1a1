# -*- coding: utf-8 -*-
"""
WebSocket 工具：封装 Channels 组广播，避免调用方关心 channel layer 细节
- 统一附带自增序号 seq，便于前端按序处理/去重
- 提供个人通知与轮次状态广播
"""

from __future__ import annotations

import itertools

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from apps.common.infra.logger import get_logger, logger_extra

logger = get_logger(__name__)
_seq_generator = itertools.count(1)


def _safe_group_send(group: str, payload: dict) -> None:
    """
    安全发送组消息：没有 channel layer 时直接跳过，发送失败只记录告警，避免阻断业务
    """
    layer = get_channel_layer()
    if layer is None:
        return
    try:
        async_to_sync(layer.group_send)(group, {"type": "broadcast", **payload})
    except Exception:
        logger.warning(
            "WebSocket 广播失败，已忽略",
            extra=logger_extra({"group": group, "event": payload.get("event")}),
            exc_info=True,
        )


def user_group(user_id: int) -> str:
    return f"user_{user_id}"


def round_group(round_id: int) -> str:
    return f"round_{round_id}"


def broadcast_notify(user_id: int, payload: dict) -> None:
    """向指定用户组广播事件"""
    payload = {"seq": next(_seq_generator), **payload}
    _safe_group_send(user_group(user_id), payload)


def broadcast_round(round_id: int, payload: dict) -> None:
    """向轮次组广播状态变化（激活/结束/关闭/延期）"""
    payload = {"seq": next(_seq_generator), **payload}
    _safe_group_send(round_group(round_id), payload)
