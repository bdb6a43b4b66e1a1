from __future__ import annotations

from rest_framework import serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import OpenApiParameter, extend_schema

from apps.common.exceptions import ValidationError
from apps.common.permissions import IsAuthenticated
from apps.common.response import success
from apps.common.schema_utils import api_response_schema, list_response

from .models import Notification
from .repo import NotificationRepo
from .services import (
    NotificationMarkAllReadService,
    NotificationMarkReadService,
    serialize_notification,
)

# 教师看晋级/淘汰结果，评委看指派与提醒，管理员看轮次关闭汇总，均走同一组接口

DEFAULT_LIMIT = 50
MAX_LIMIT = 200

TYPE_PARAM = OpenApiParameter(
    name="type",
    location=OpenApiParameter.QUERY,
    required=False,
    description="按通知类型过滤",
    type=str,
    enum=list(Notification.Type.values),
)

NOTIFICATION_FIELDS = {
    "id": serializers.IntegerField(),
    "type": serializers.ChoiceField(choices=Notification.Type.choices),
    "title": serializers.CharField(),
    "body": serializers.CharField(allow_blank=True),
    "payload": serializers.DictField(required=False, help_text="submission_id / round_id / rank 等关联数据"),
    "read_at": serializers.DateTimeField(required=False, allow_null=True),
    "created_at": serializers.DateTimeField(),
}


def _parse_limit(raw) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return max(1, min(value, MAX_LIMIT))


def _parse_type(raw) -> str | None:
    if not raw:
        return None
    if raw not in Notification.Type.values:
        raise ValidationError(message="通知类型不合法", extra={"type": raw})
    return raw


class NotificationListView(APIView):
    """当前用户的通知，按时间倒序；status=unread 只看未读"""

    permission_classes = [IsAuthenticated]
    repo = NotificationRepo()

    @extend_schema(
        summary="通知列表",
        operation_id="notification_list",
        responses=list_response("NotificationList", NOTIFICATION_FIELDS),
        parameters=[
            OpenApiParameter(
                name="status",
                location=OpenApiParameter.QUERY,
                required=False,
                description="unread/all（默认 all）",
                type=str,
                enum=["unread", "all"],
            ),
            TYPE_PARAM,
            OpenApiParameter(name="limit", location=OpenApiParameter.QUERY, required=False, type=int),
        ],
        tags=["notifications"],
    )
    def get(self, request: Request) -> Response:
        params = request.query_params
        queryset = self.repo.filter(user=request.user)
        if params.get("status") == "unread":
            queryset = queryset.filter(read_at__isnull=True)
        notif_type = _parse_type(params.get("type"))
        if notif_type:
            queryset = queryset.filter(type=notif_type)
        limit = _parse_limit(params.get("limit"))
        items = [serialize_notification(n) for n in queryset.order_by("-created_at", "-id")[:limit]]
        return success({"items": items})


class NotificationUnreadCountView(APIView):
    permission_classes = [IsAuthenticated]
    repo = NotificationRepo()

    @extend_schema(
        summary="未读通知数量",
        operation_id="notification_unread_count",
        responses=api_response_schema(
            "NotificationUnreadCount",
            {
                "unread": serializers.IntegerField(help_text="未读总数"),
                "by_type": serializers.DictField(child=serializers.IntegerField(), help_text="按类型拆分的未读数"),
            },
        ),
        tags=["notifications"],
    )
    def get(self, request: Request) -> Response:
        by_type = self.repo.unread_by_type(request.user)
        return success({"unread": sum(by_type.values()), "by_type": by_type})


class NotificationMarkReadView(APIView):
    """标记单条通知已读，只能操作自己的通知"""

    permission_classes = [IsAuthenticated]
    service = NotificationMarkReadService()

    @extend_schema(
        summary="标记通知已读",
        operation_id="notification_mark_read",
        request=None,
        responses=api_response_schema("NotificationMarkRead", NOTIFICATION_FIELDS),
        tags=["notifications"],
    )
    def post(self, request: Request, notification_id: int) -> Response:
        notif = self.service.execute(request.user, notification_id)
        return success(serialize_notification(notif))


class NotificationMarkAllReadView(APIView):
    permission_classes = [IsAuthenticated]
    service = NotificationMarkAllReadService()

    @extend_schema(
        summary="全部标记为已读",
        operation_id="notification_mark_all_read",
        request=None,
        parameters=[TYPE_PARAM],
        responses=api_response_schema(
            "NotificationMarkAllRead",
            {"updated": serializers.IntegerField(help_text="本次标记的通知数量")},
        ),
        tags=["notifications"],
    )
    def post(self, request: Request) -> Response:
        notif_type = _parse_type(request.query_params.get("type") or request.data.get("type"))
        updated = self.service.execute(request.user, type=notif_type)
        return success({"updated": updated}, message="已标记为已读")
