# -*- coding: utf-8 -*-
"""
通用 WebSocket 消费者

功能目标：
- 轻量级实时通知，不做持久化/历史消息（持久化由 notifications 应用负责）
- 个人频道：晋级/淘汰/分配通知点对点推送
- 轮次频道：轮次状态变化广播，便于管理端与评委端刷新倒计时
"""

from __future__ import annotations

from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from apps.common.ws_utils import round_group, user_group


class BaseAuthorizedConsumer(AsyncJsonWebsocketConsumer):
    """
    需登录的基础 Consumer：
    - 未登录直接以 4401 关闭
    - 子类实现 get_group_name 决定加入的分组
    """

    group_name: str | None = None

    def get_group_name(self, user) -> str | None:
        raise NotImplementedError

    async def connect(self):
        user = self.scope.get("user")
        if user is None or isinstance(user, AnonymousUser) or not user.is_authenticated:
            await self.close(code=4401)
            return None
        self.group_name = self.get_group_name(user)
        await self.accept()
        if self.group_name and self.channel_layer:
            await self.channel_layer.group_add(self.group_name, self.channel_name)
        return None

    async def disconnect(self, close_code):
        if getattr(self, "group_name", None) and self.channel_layer:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
        return None

    async def receive_json(self, content, **kwargs):
        """前端发送 {"type":"ping"} 时回复 pong，其余消息忽略"""
        if content.get("type") == "ping":
            await self.send_json({"event": "pong"})
        return None

    async def broadcast(self, event):
        """统一的广播入口：直接把 event 透传给前端"""
        await self.send_json(event)


class NotifyConsumer(BaseAuthorizedConsumer):
    """个人通知通道：默认加入 user_<id> 分组"""

    def get_group_name(self, user) -> str | None:
        return user_group(user.id)


class RoundEventConsumer(BaseAuthorizedConsumer):
    """轮次事件通道：按轮次 id 分组推送状态变化"""

    def get_group_name(self, user) -> str | None:
        round_id = self.scope["url_route"]["kwargs"].get("round_id")
        return round_group(round_id)
