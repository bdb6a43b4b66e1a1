# apps/tiebreaks/schemas.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from apps.common.base.base_schema import BaseSchema
from apps.common.exceptions import ValidationError
from apps.common.levels import Level
from apps.leaderboards.schemas import validate_level, validate_year


def _positive_int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(message=f"{label}必须为正整数")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(message=f"{label}必须为正整数")
    if number < 1:
        raise ValidationError(message=f"{label}必须为正整数")
    return number


@dataclass
class TieBreakCreateSchema(BaseSchema[None]):
    """
    发起平局裁决：
    - 至少两份不同的候选作品（重复 id 去重后计数）
    - quota 为胜出名额，默认 1
    """
    auto_validate: ClassVar[bool] = True
    ALIASES: ClassVar[dict[str, str]] = {
        "submissionIds": "candidate_ids",
        "submission_ids": "candidate_ids",
        "candidates": "candidate_ids",
        "areaOfFocus": "area_of_focus",
    }
    year: Any = None
    level: Optional[str] = None
    region: Optional[str] = None
    council: Optional[str] = None
    area_of_focus: str = ""
    candidate_ids: list = field(default_factory=list)
    quota: Any = 1

    def validate(self) -> None:
        self.year = validate_year(self.year)
        self.level = validate_level(self.level)
        self.region = (self.region or "").strip() or None
        self.council = (self.council or "").strip() or None
        if self.level == Level.NATIONAL:
            self.region = self.council = None
        elif self.level == Level.REGIONAL:
            self.council = None
        self.area_of_focus = (self.area_of_focus or "").strip()
        if not isinstance(self.candidate_ids, (list, tuple)):
            raise ValidationError(message="候选作品必须为数组")
        ids: list[int] = []
        for raw in self.candidate_ids:
            item = _positive_int(raw, "候选作品 id")
            if item not in ids:
                ids.append(item)
        if len(ids) < 2:
            raise ValidationError(message="平局裁决至少需要两份不同的候选作品")
        self.candidate_ids = ids
        self.quota = _positive_int(self.quota if self.quota not in (None, "") else 1, "胜出名额")


@dataclass
class TieBreakVoteSchema(BaseSchema[None]):
    auto_validate: ClassVar[bool] = True
    ALIASES: ClassVar[dict[str, str]] = {"submissionId": "submission_id"}
    submission_id: Any = None

    def validate(self) -> None:
        self.submission_id = _positive_int(self.submission_id, "作品 id")


@dataclass
class TieBreakResolveSchema(BaseSchema[None]):
    """裁决：quota 可选，缺省使用发起时的名额"""
    auto_validate: ClassVar[bool] = True
    quota: Any = None

    def validate(self) -> None:
        if self.quota in (None, ""):
            self.quota = None
            return
        self.quota = _positive_int(self.quota, "胜出名额")
