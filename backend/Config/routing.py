# -*- coding: utf-8 -*-
"""
全局 WebSocket 路由配置

- 个人通知通道与轮次事件通道
- 鉴权在 Consumer 内校验
"""

from django.urls import path

from apps.common.consumers import NotifyConsumer, RoundEventConsumer

websocket_urlpatterns = [
    path("ws/notify/", NotifyConsumer.as_asgi(), name="ws-notify"),
    path("ws/rounds/<int:round_id>/", RoundEventConsumer.as_asgi(), name="ws-round-events"),
]
