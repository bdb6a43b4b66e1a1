# apps/common/base/base_repo.py

from __future__ import annotations

from abc import ABC
from typing import Any, Generic, Iterable, Optional, Sequence, TypeVar

from django.db.models import Model, QuerySet

T = TypeVar("T", bound=Model)


class BaseRepo(ABC, Generic[T]):
    """
    Repository（数据访问层）基类：
    - 统一封装 Django ORM 读写细节，给 Service 提供稳定接口
    - 集中管理 select_related/filter/行锁等查询配置，减少各模块重复 CRUD
    - 用法示例：class SubmissionRepo(BaseRepo[Submission]): model = Submission
    """

    #: 子类必须指定对应的模型
    model: type[T]

    # ------------------------
    # QuerySet 构建
    # ------------------------

    def get_queryset(self) -> QuerySet[T]:
        """返回默认 QuerySet，子类可覆盖以附加 select_related/prefetch"""
        if not getattr(self, "model", None):
            raise NotImplementedError("BaseRepo 子类必须声明 model 属性")
        return self.model._default_manager.all()

    def filter(self, *, queryset: Optional[QuerySet[T]] = None, **filters) -> QuerySet[T]:
        """通用过滤入口，允许注入自定义 QuerySet"""
        qs = queryset if queryset is not None else self.get_queryset()
        return qs.filter(**filters)

    def list(self, **filters) -> Iterable[T]:
        return self.filter(**filters)

    def get_by_id(self, pk: Any, *, queryset: Optional[QuerySet[T]] = None) -> T:
        """根据主键获取对象，不存在时由上层捕获 DoesNotExist 转 BizError"""
        qs = queryset if queryset is not None else self.get_queryset()
        return qs.get(pk=pk)

    def get_or_none(self, *, queryset: Optional[QuerySet[T]] = None, **filters) -> Optional[T]:
        qs = queryset if queryset is not None else self.get_queryset()
        return qs.filter(**filters).first()

    def exists(self, **filters) -> bool:
        return self.filter(**filters).exists()

    def count(self, **filters) -> int:
        return self.filter(**filters).count()

    def lock_by_ids(self, ids: Sequence[Any]) -> list[T]:
        """
        按主键加行锁读取（SELECT ... FOR UPDATE），必须在事务内调用
        - 按主键排序加锁，避免并发事务交叉加锁产生死锁
        """
        if not ids:
            return []
        return list(self.model._default_manager.select_for_update().filter(pk__in=list(ids)).order_by("pk"))

    # ------------------------
    # 写操作
    # ------------------------

    def create(self, data: dict) -> T:
        return self.model._default_manager.create(**data)

    def update(self, instance: T, data: dict) -> T:
        """批量更新字段并保存，仅写入变更字段"""
        for field, value in data.items():
            setattr(instance, field, value)
        if data:
            instance.save(update_fields=list(data.keys()))
        else:
            instance.save()
        return instance

    def bulk_update(self, instances: Sequence[T], fields: Sequence[str]) -> int:
        if not instances:
            return 0
        return self.model._default_manager.bulk_update(list(instances), list(fields))

    def delete(self, instance: T) -> None:
        instance.delete()
