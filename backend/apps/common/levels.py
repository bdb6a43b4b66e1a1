"""
赛事层级与地区键：各应用共享的领域词汇

- 层级顺序：Council（区县）< Regional（省/大区）< National（全国）
- 地区键（location_key）：Council 为 "region::council"，Regional 为 "region"，National 固定为 "national"
"""

from __future__ import annotations

from typing import Optional

from django.db import models

LOCATION_SEPARATOR = "::"
NATIONAL_LOCATION_KEY = "national"


class Level(models.TextChoices):
    COUNCIL = "Council", "区县级"
    REGIONAL = "Regional", "大区级"
    NATIONAL = "National", "全国级"


LEVEL_ORDER = (Level.COUNCIL, Level.REGIONAL, Level.NATIONAL)


def get_next_level(level: str) -> Optional[str]:
    """返回下一层级；已是最高层级或未知层级时返回 None"""
    try:
        index = [str(item) for item in LEVEL_ORDER].index(str(level))
    except ValueError:
        return None
    if index >= len(LEVEL_ORDER) - 1:
        return None
    return str(LEVEL_ORDER[index + 1])


def levels_above(level: str) -> list[str]:
    """严格高于给定层级的全部层级，如 Council → [Regional, National]"""
    above: list[str] = []
    current = get_next_level(level)
    while current is not None:
        above.append(current)
        current = get_next_level(current)
    return above


def uses_assignment(level: str) -> bool:
    """Council/Regional 采用一对一指派评审；National 由全部评委交叉评审"""
    return str(level) in (Level.COUNCIL, Level.REGIONAL)


def build_location_key(level: str, region: Optional[str] = None, council: Optional[str] = None) -> str:
    """根据层级拼接地区键"""
    if str(level) == Level.COUNCIL:
        return f"{region or ''}{LOCATION_SEPARATOR}{council or ''}"
    if str(level) == Level.REGIONAL:
        return region or ""
    return NATIONAL_LOCATION_KEY


def parse_location_key(level: str, location_key: str) -> tuple[Optional[str], Optional[str]]:
    """地区键反解为 (region, council)，National 返回 (None, None)"""
    if str(level) == Level.COUNCIL:
        region, _, council = (location_key or "").partition(LOCATION_SEPARATOR)
        return region or None, council or None
    if str(level) == Level.REGIONAL:
        return location_key or None, None
    return None, None


def scope_filters(level: str, region: Optional[str] = None, council: Optional[str] = None, *, prefix: str = "") -> dict:
    """
    按层级构造地区过滤条件（用于作品查询）
    - Council 需同时匹配 region + council；Regional 只匹配 region；National 不限地区
    - region/council 为空时视为不限制（全国范围的轮次）
    """
    filters: dict = {}
    if str(level) == Level.NATIONAL:
        return filters
    if region:
        filters[f"{prefix}region"] = region
    if council and str(level) == Level.COUNCIL:
        filters[f"{prefix}council"] = council
    return filters
