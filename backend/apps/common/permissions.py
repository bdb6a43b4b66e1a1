"""
通用权限封装（apps.common.permissions）

职责：
- 放置全局可复用的权限类（基于 Django/DRF 的认证系统）
- 只消费调用方身份中的角色事实（teacher/judge/admin/superadmin），不承载授权策略
- 出错时统一抛出 BizError 子类（PermissionDeniedError），由全局异常处理器统一包装响应
"""

from __future__ import annotations

from typing import Any, Iterable

from rest_framework.permissions import BasePermission
from rest_framework.request import Request

from .exceptions import AccountInactiveError, PermissionDeniedError

ADMIN_ROLES = ("admin", "superadmin")


# ======================
# 小工具
# ======================

def _ensure_authenticated(request: Request):
    """
    确保用户已登录且账户处于启用状态，返回 User
    """
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        raise PermissionDeniedError(message="请先登录后再执行此操作")
    if getattr(user, "status", "active") != "active":
        raise AccountInactiveError()
    return user


def is_admin_user(user) -> bool:
    """管理员判定：超级用户或管理员角色"""
    if user is None or not user.is_authenticated:
        return False
    return bool(user.is_superuser or getattr(user, "role", None) in ADMIN_ROLES)


def ensure_role(user, roles: Iterable[str], *, message: str | None = None) -> None:
    """不满足角色要求时抛出业务无权异常，超级用户兜底放行"""
    if getattr(user, "is_superuser", False):
        return
    if getattr(user, "role", None) not in tuple(roles):
        raise PermissionDeniedError(message=message or "无权执行该操作")


# ======================
# 通用权限类
# ======================

class AllowAny(BasePermission):
    """允许任何请求通过（公开接口）"""

    def has_permission(self, request: Request, view: Any) -> bool:  # noqa: D401
        return True


class IsAuthenticated(BasePermission):
    """
    需要已登录用户

    等价于 DRF 默认的 IsAuthenticated，但出错时抛 BizError，
    便于全局异常处理器统一格式
    """

    message = "请先登录后再执行此操作"

    def has_permission(self, request: Request, view: Any) -> bool:
        _ensure_authenticated(request)
        return True


class IsAdmin(BasePermission):
    """
    需要管理员角色（admin / superadmin）

    - 未登录 → 提示先登录
    - 已登录但非管理员 → 无权访问
    """

    message = "仅管理员可以执行此操作"

    def has_permission(self, request: Request, view: Any) -> bool:
        user = _ensure_authenticated(request)
        if is_admin_user(user):
            return True
        raise PermissionDeniedError(message=self.message)


class IsJudge(BasePermission):
    """需要评委角色"""

    message = "仅评委可以执行此操作"

    def has_permission(self, request: Request, view: Any) -> bool:
        user = _ensure_authenticated(request)
        if getattr(user, "role", None) == "judge":
            return True
        raise PermissionDeniedError(message=self.message)


class IsAdminOrReadOnly(BasePermission):
    """
    读接口需登录，写接口仅管理员
    """

    message = "仅管理员可以修改该资源"

    def has_permission(self, request: Request, view: Any) -> bool:
        user = _ensure_authenticated(request)
        if request.method in ("GET", "HEAD", "OPTIONS"):
            return True
        if is_admin_user(user):
            return True
        raise PermissionDeniedError(message=self.message)
