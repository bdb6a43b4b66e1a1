# apps/common/base/base_schema.py

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, fields
from typing import Any, ClassVar, Dict, Generic, Iterable, Optional, TypeVar

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound="BaseSchema[Any]")


@dataclass
class BaseSchema(ABC, Generic[T]):
    """
    业务 Schema / DTO 基类

    目的：
        - 用于 Service 层在 Model 与外部输入之间传递结构化数据；
        - 聚合字段校验逻辑，替代零散的 serializer/表单校验；
        - 兼容前端驼峰命名（areaOfFocus → area_of_focus），忽略未声明字段

    子类示例：
        @dataclass
        class QuotaUpsertSchema(BaseSchema):
            year: int
            level: str
            quota: int

            def validate(self):
                if self.quota < 1:
                    raise ValidationError("配额至少为 1")
    """

    #: 是否在 __post_init__ 中自动执行 validate
    auto_validate: ClassVar[bool] = False
    #: 字段别名映射：外部字段名 → 内部字段名
    ALIASES: ClassVar[dict[str, str]] = {}

    def __post_init__(self):
        if self.auto_validate:
            self.validate()

    @abstractmethod
    def validate(self) -> None:
        """子类实现字段/业务约束校验，出错时抛 BizError"""

    def to_dict(
            self,
            *,
            exclude_none: bool = False,
            exclude: Iterable[str] | None = None,
    ) -> Dict[str, Any]:
        """将 Schema 转为 dict，支持过滤 None 或移除指定字段"""
        data = asdict(self)
        if exclude_none:
            data = {key: value for key, value in data.items() if value is not None}
        for key in exclude or ():
            data.pop(key, None)
        return data

    @classmethod
    def from_dict(
            cls: type[SchemaType],
            data: Dict[str, Any],
            *,
            auto_validate: Optional[bool] = None,
    ) -> SchemaType:
        """
        将外部 payload 转为 Schema；auto_validate 控制是否立即校验
        - QueryDict/Mapping 统一转为普通 dict
        - 别名字段映射到内部字段，目标字段已存在时丢弃别名
        - 未声明的字段直接忽略，避免 __init__ 收到未知参数
        """
        if hasattr(data, "dict") and callable(data.dict):
            data = data.dict()
        elif not isinstance(data, dict):
            data = {key: data.get(key) for key in data.keys()}
        normalized = dict(data)
        for alias, target in cls.ALIASES.items():
            if alias in normalized:
                value = normalized.pop(alias)
                normalized.setdefault(target, value)
        allowed = {f.name for f in fields(cls) if f.init}
        payload = {key: value for key, value in normalized.items() if key in allowed}
        instance = cls(**payload)  # type: ignore[arg-type]
        # auto_validate 为类属性 True 时已在 __post_init__ 中校验过
        if auto_validate and not cls.auto_validate:
            instance.validate()
        return instance
