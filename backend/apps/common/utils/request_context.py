from __future__ import annotations

import contextvars
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

request_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")
user_id_ctx: contextvars.ContextVar[Optional[int]] = contextvars.ContextVar("user_id", default=None)
role_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("role", default="")
username_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("username", default="")
path_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("path", default="")
method_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("method", default="")
ip_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("ip", default="")
ua_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("user_agent", default="")
last_context_ctx: contextvars.ContextVar[dict | None] = contextvars.ContextVar("last_context", default=None)
last_context_expire_ctx: contextvars.ContextVar[Optional[datetime]] = contextvars.ContextVar(
    "last_context_expire", default=None
)
LAST_CONTEXT_TTL = timedelta(seconds=2)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


def set_request_context(
    *,
    request_id: Optional[str] = None,
    user_id: Optional[int] = None,
    role: str = "",
    username: str = "",
    path: str = "",
    method: str = "",
    ip: str = "",
    user_agent: str = "",
) -> None:
    request_id_ctx.set(request_id or generate_request_id())
    user_id_ctx.set(user_id)
    role_ctx.set(role or "")
    username_ctx.set(username or "")
    path_ctx.set(path or "")
    method_ctx.set(method or "")
    ip_ctx.set(ip or "")
    ua_ctx.set(user_agent or "")


def _snapshot() -> dict:
    return {
        "request_id": request_id_ctx.get(""),
        "user_id": user_id_ctx.get(None),
        "role": role_ctx.get(""),
        "username": username_ctx.get(""),
        "path": path_ctx.get(""),
        "method": method_ctx.get(""),
        "ip": ip_ctx.get(""),
        "user_agent": ua_ctx.get(""),
    }


def clear_request_context() -> None:
    # 清空前记录快照，供请求结束阶段的日志读取
    snapshot = _snapshot()
    if snapshot["request_id"]:
        last_context_ctx.set(snapshot)
        last_context_expire_ctx.set(datetime.now(timezone.utc) + LAST_CONTEXT_TTL)
    request_id_ctx.set("")
    user_id_ctx.set(None)
    role_ctx.set("")
    username_ctx.set("")
    path_ctx.set("")
    method_ctx.set("")
    ip_ctx.set("")
    ua_ctx.set("")


def get_request_context() -> dict:
    ctx = _snapshot()
    if not ctx["request_id"]:
        last_ctx = last_context_ctx.get(None)
        expire_at = last_context_expire_ctx.get(None)
        if last_ctx and expire_at and expire_at > datetime.now(timezone.utc):
            return last_ctx
    return ctx

