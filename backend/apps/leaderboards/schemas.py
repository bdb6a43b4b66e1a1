# apps/leaderboards/schemas.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Optional

from django.conf import settings

from apps.common.base.base_schema import BaseSchema
from apps.common.exceptions import ValidationError
from apps.common.levels import Level


def _to_int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(message=f"{label}必须为整数")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(message=f"{label}必须为整数")


def validate_year(value: Any) -> int:
    """年度限定在配置范围内（默认 2020..2030）"""
    year = _to_int(value, "年度")
    low = getattr(settings, "COMPETITION_YEAR_MIN", 2020)
    high = getattr(settings, "COMPETITION_YEAR_MAX", 2030)
    if not low <= year <= high:
        raise ValidationError(message=f"年度必须在 {low} 到 {high} 之间")
    return year


def validate_level(value: Any) -> str:
    if value not in Level.values:
        raise ValidationError(message="层级必须为 Council / Regional / National")
    return str(value)


@dataclass
class QuotaUpsertSchema(BaseSchema[None]):
    """设置晋级配额：同一年度同一层级仅一条，重复设置即更新"""
    auto_validate: ClassVar[bool] = True
    year: Any = None
    level: Optional[str] = None
    quota: Any = None

    def validate(self) -> None:
        self.year = validate_year(self.year)
        self.level = validate_level(self.level)
        quota = _to_int(self.quota, "配额")
        low = getattr(settings, "QUOTA_MIN", 1)
        high = getattr(settings, "QUOTA_MAX", 10000)
        if not low <= quota <= high:
            raise ValidationError(message=f"配额必须在 {low} 到 {high} 之间")
        self.quota = quota


@dataclass
class LeaderboardQuerySchema(BaseSchema[None]):
    """排行榜查询参数"""
    auto_validate: ClassVar[bool] = True
    ALIASES: ClassVar[dict[str, str]] = {"areaOfFocus": "area_of_focus", "locationKey": "location_key"}
    year: Any = None
    area_of_focus: str = ""
    level: Optional[str] = None
    location_key: str = ""

    def validate(self) -> None:
        self.year = validate_year(self.year)
        self.level = validate_level(self.level)
        self.area_of_focus = (self.area_of_focus or "").strip()
        if not self.area_of_focus:
            raise ValidationError(message="请指定领域")
        self.location_key = (self.location_key or "").strip()
        if self.level != Level.NATIONAL and not self.location_key:
            raise ValidationError(message="请指定地区键")


@dataclass
class AdvanceSchema(BaseSchema[None]):
    """手动晋级某层级地区范围"""
    auto_validate: ClassVar[bool] = True
    year: Any = None
    level: Optional[str] = None
    region: Optional[str] = None
    council: Optional[str] = None

    def validate(self) -> None:
        self.year = validate_year(self.year)
        self.level = validate_level(self.level)
        self.region = (self.region or "").strip() or None
        self.council = (self.council or "").strip() or None
        if self.council and not self.region:
            raise ValidationError(message="指定区县时必须同时指定大区")
