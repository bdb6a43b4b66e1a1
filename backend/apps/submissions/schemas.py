# apps/submissions/schemas.py

from __future__ import annotations

from dataclasses import dataclass, field
from numbers import Number
from typing import ClassVar, Optional

from apps.common.base.base_schema import BaseSchema
from apps.common.exceptions import ValidationError


# Schema 层：负责请求入参的结构化与校验，禁止写业务逻辑


@dataclass
class EvaluationCreateSchema(BaseSchema[None]):
    """
    评委评分入参：
    - scores 为 {评分项: 分数}，至少包含一项，分数为非负数
    """
    auto_validate: ClassVar[bool] = True
    # 分项得分
    scores: dict = field(default_factory=dict)
    # 评语
    comments: str = ""

    def validate(self) -> None:
        if not isinstance(self.scores, dict) or not self.scores:
            raise ValidationError(message="请至少填写一项评分")
        for criterion, value in self.scores.items():
            if isinstance(value, bool) or not isinstance(value, Number):
                raise ValidationError(message=f"评分项 {criterion} 的分数必须为数字")
            if value < 0:
                raise ValidationError(message=f"评分项 {criterion} 的分数不能为负数")
        self.comments = (self.comments or "").strip()


@dataclass
class ManualAssignSchema(BaseSchema[None]):
    """手动指派评委入参"""
    auto_validate: ClassVar[bool] = True
    ALIASES: ClassVar[dict[str, str]] = {"judgeId": "judge_id"}
    judge_id: Optional[int] = None

    def validate(self) -> None:
        if not self.judge_id:
            raise ValidationError(message="请指定评委")


@dataclass
class DisqualifySchema(BaseSchema[None]):
    """取消资格入参：必须填写原因"""
    auto_validate: ClassVar[bool] = True
    reason: str = ""

    def validate(self) -> None:
        self.reason = (self.reason or "").strip()
        if not self.reason:
            raise ValidationError(message="请填写取消资格原因")
