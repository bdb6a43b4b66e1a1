"""
时间工具：统一使用感知时区的时间，毫秒时长与 timedelta 互转
"""

from __future__ import annotations

import datetime
from typing import Callable, Optional, Union

from django.utils import timezone

Clock = Callable[[], datetime.datetime]


def now() -> datetime.datetime:
    """返回当前时间（感知时区），作为默认时钟注入调度器与服务"""
    return timezone.now()


def resolve_now(value: Optional[datetime.datetime] = None, clock: Optional[Clock] = None) -> datetime.datetime:
    """优先使用显式传入的时间，其次使用注入时钟，最后回退到系统时间"""
    if value is not None:
        return ensure_aware(value)
    return ensure_aware((clock or now)())


def ensure_aware(dt: datetime.datetime) -> datetime.datetime:
    """naive datetime 按默认时区补齐"""
    if timezone.is_naive(dt):
        return timezone.make_aware(dt, timezone.get_default_timezone())
    return dt


def ms_to_timedelta(value: Union[int, float, str]) -> datetime.timedelta:
    """毫秒转 timedelta，接口层时长参数统一以毫秒传输"""
    return datetime.timedelta(milliseconds=float(value))


def timedelta_to_ms(value: Optional[datetime.timedelta]) -> Optional[int]:
    """timedelta 转毫秒，None 原样返回"""
    if value is None:
        return None
    return int(value.total_seconds() * 1000)


def parse_datetime_value(value: Union[str, datetime.datetime, None]) -> Optional[datetime.datetime]:
    """ISO 字符串或 datetime 统一转换为感知时区的 datetime"""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    return ensure_aware(value)
