from __future__ import annotations

from typing import Optional

from django.db.models import Count
from django.utils import timezone

from apps.common.base.base_repo import BaseRepo

from .models import Notification


class NotificationRepo(BaseRepo[Notification]):
    """通知仓储：封装常用查询与写入"""

    model = Notification

    def unread_count(self, user) -> int:
        return self.filter(user=user, read_at__isnull=True).count()

    def unread_by_type(self, user) -> dict[str, int]:
        rows = (
            self.filter(user=user, read_at__isnull=True)
            .values("type")
            .annotate(total=Count("id"))
            .order_by()
        )
        return {row["type"]: row["total"] for row in rows}

    def mark_all_read(self, user, type: Optional[str] = None) -> int:
        queryset = self.filter(user=user, read_at__isnull=True)
        if type:
            queryset = queryset.filter(type=type)
        return queryset.update(read_at=timezone.now())

    def get_by_dedup(self, user, dedup_key: str) -> Optional[Notification]:
        if not dedup_key:
            return None
        return self.filter(user=user, dedup_key=dedup_key).first()
