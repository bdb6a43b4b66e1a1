# apps/rounds/schemas.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, ClassVar, Optional

from apps.common.base.base_schema import BaseSchema
from apps.common.exceptions import ValidationError
from apps.common.levels import Level
from apps.common.utils.time import ms_to_timedelta, parse_datetime_value
from apps.leaderboards.schemas import validate_level, validate_year

from .models import CompetitionRound

# Schema 层：轮次创建/修改/延期/可见性/手动提醒入参校验


def _positive_duration(value: Any, label: str) -> timedelta:
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError(message=f"请填写{label}")
    try:
        duration = ms_to_timedelta(value)
    except (TypeError, ValueError):
        raise ValidationError(message=f"{label}必须为毫秒数")
    if duration.total_seconds() <= 0:
        raise ValidationError(message=f"{label}必须大于 0")
    return duration


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass
class RoundCreateSchema(BaseSchema[None]):
    """
    创建轮次入参：
    - fixed_time 必须给出截止时间；countdown 必须给出倒计时时长（毫秒）
    - 指定区县时必须指定大区；National 不能限定地区，Regional 不能限定区县
    """
    auto_validate: ClassVar[bool] = True
    ALIASES: ClassVar[dict[str, str]] = {
        "timingType": "timing_type",
        "endTime": "end_time",
        "countdownDuration": "countdown_duration_ms",
        "countdown_duration": "countdown_duration_ms",
        "autoAdvance": "auto_advance",
        "waitForAllJudges": "wait_for_all_judges",
        "reminderEnabled": "reminder_enabled",
        "reminderFrequency": "reminder_frequency",
    }

    year: Any = None
    level: Optional[str] = None
    timing_type: Optional[str] = None
    region: Optional[str] = None
    council: Optional[str] = None
    end_time: Any = None
    countdown_duration_ms: Any = None
    auto_advance: Any = None
    wait_for_all_judges: Any = None
    reminder_enabled: Any = None
    reminder_frequency: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    countdown_duration: Optional[timedelta] = field(default=None, init=False)

    def validate(self) -> None:
        self.year = validate_year(self.year)
        self.level = validate_level(self.level)
        if self.timing_type not in CompetitionRound.TimingType.values:
            raise ValidationError(message="计时方式必须为 fixed_time 或 countdown")

        self.region = (self.region or "").strip() or None
        self.council = (self.council or "").strip() or None
        if self.council and not self.region:
            raise ValidationError(message="指定区县时必须同时指定大区")
        if self.level == Level.NATIONAL and (self.region or self.council):
            raise ValidationError(message="全国层级轮次不能限定地区")
        if self.level == Level.REGIONAL and self.council:
            raise ValidationError(message="大区层级轮次不能限定区县")

        if self.timing_type == CompetitionRound.TimingType.FIXED_TIME:
            try:
                end_time: Optional[datetime] = parse_datetime_value(self.end_time)
            except (TypeError, ValueError):
                raise ValidationError(message="截止时间格式不正确")
            if end_time is None:
                raise ValidationError(message="固定时间轮次必须设置截止时间")
            self.end_time = end_time
        else:
            self.countdown_duration = _positive_duration(self.countdown_duration_ms, "倒计时时长")
            self.end_time = None

        self.auto_advance = _as_bool(self.auto_advance, True)
        self.wait_for_all_judges = _as_bool(self.wait_for_all_judges, True)
        self.reminder_enabled = _as_bool(self.reminder_enabled, True)
        self.reminder_frequency = self.reminder_frequency or CompetitionRound.ReminderFrequency.DAILY
        if self.reminder_frequency not in CompetitionRound.ReminderFrequency.values:
            raise ValidationError(message="提醒频率必须为 daily / twice_daily / hourly")
        if not isinstance(self.metadata, dict):
            raise ValidationError(message="metadata 必须为对象")


@dataclass
class RoundExtendSchema(BaseSchema[None]):
    """延期入参：extra_ms 为正的毫秒数"""
    auto_validate: ClassVar[bool] = True
    ALIASES: ClassVar[dict[str, str]] = {"extraMs": "extra_ms", "additionalTime": "extra_ms"}
    extra_ms: Any = None
    extra: Optional[timedelta] = field(default=None, init=False)

    def validate(self) -> None:
        self.extra = _positive_duration(self.extra_ms, "延长时长")


@dataclass
class RoundVisibilitySchema(BaseSchema[None]):
    auto_validate: ClassVar[bool] = True
    visibility: Optional[str] = None

    def validate(self) -> None:
        if self.visibility not in CompetitionRound.Visibility.values:
            raise ValidationError(message="可见性必须为 live 或 frozen")


@dataclass
class RoundUpdateSchema(BaseSchema[None]):
    """
    修改轮次入参：只更新传入的字段，范围（年度/层级/地区）不可修改
    - 切换为 fixed_time 需给出截止时间（或沿用已有截止时间）
    - 切换为 countdown 需给出倒计时时长（或沿用已有时长）
    """
    auto_validate: ClassVar[bool] = True
    ALIASES: ClassVar[dict[str, str]] = RoundCreateSchema.ALIASES

    timing_type: Optional[str] = None
    end_time: Any = None
    countdown_duration_ms: Any = None
    auto_advance: Any = None
    wait_for_all_judges: Any = None
    reminder_enabled: Any = None
    reminder_frequency: Optional[str] = None
    metadata: Optional[dict] = None
    countdown_duration: Optional[timedelta] = field(default=None, init=False)

    def validate(self) -> None:
        if self.timing_type is not None and self.timing_type not in CompetitionRound.TimingType.values:
            raise ValidationError(message="计时方式必须为 fixed_time 或 countdown")
        if self.end_time not in (None, ""):
            try:
                self.end_time = parse_datetime_value(self.end_time)
            except (TypeError, ValueError):
                raise ValidationError(message="截止时间格式不正确")
        else:
            self.end_time = None
        if self.countdown_duration_ms is not None:
            self.countdown_duration = _positive_duration(self.countdown_duration_ms, "倒计时时长")
        if self.reminder_frequency is not None and self.reminder_frequency not in CompetitionRound.ReminderFrequency.values:
            raise ValidationError(message="提醒频率必须为 daily / twice_daily / hourly")
        if self.metadata is not None and not isinstance(self.metadata, dict):
            raise ValidationError(message="metadata 必须为对象")

    def changes(self) -> dict:
        """传入的字段映射为模型字段；计时相关字段由服务层统一计算"""
        data: dict = {}
        for name in ("auto_advance", "wait_for_all_judges", "reminder_enabled"):
            value = getattr(self, name)
            if value is not None:
                data[name] = _as_bool(value, True)
        if self.reminder_frequency is not None:
            data["reminder_frequency"] = self.reminder_frequency
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data


@dataclass
class RoundReminderSchema(BaseSchema[None]):
    """
    手动提醒入参：message 必填
    - region/council 仅用于按地区提醒，缺省取轮次自身范围
    """
    auto_validate: ClassVar[bool] = True
    MAX_MESSAGE_LENGTH: ClassVar[int] = 500

    message: Optional[str] = None
    region: Optional[str] = None
    council: Optional[str] = None

    def validate(self) -> None:
        if not isinstance(self.message, str) or not self.message.strip():
            raise ValidationError(message="请填写提醒内容")
        self.message = self.message.strip()
        if len(self.message) > self.MAX_MESSAGE_LENGTH:
            raise ValidationError(message=f"提醒内容不能超过 {self.MAX_MESSAGE_LENGTH} 个字符")
        self.region = (self.region or "").strip() or None
        self.council = (self.council or "").strip() or None
