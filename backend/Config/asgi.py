"""
ASGI config for Config project.

HTTP 由 Django 处理；WebSocket 经 AuthMiddlewareStack 复用会话登录态
"""

import os

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'Config.settings')

from django.core.asgi import get_asgi_application
from channels.routing import ProtocolTypeRouter, URLRouter
from channels.auth import AuthMiddlewareStack

# 先初始化 Django，确保 AppRegistry 就绪
django_application = get_asgi_application()

# 路由延后加载以避免 AppRegistryNotReady
from Config.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter({
    "http": django_application,
    "websocket": AuthMiddlewareStack(
        URLRouter(websocket_urlpatterns)
    ),
})
