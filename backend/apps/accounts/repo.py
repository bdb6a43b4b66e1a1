"""账户模块的数据访问层

封装评委按评审范围筛选等查询，避免服务层直接拼装 ORM 条件
"""

from __future__ import annotations

from typing import Optional

from django.contrib.auth import get_user_model
from django.db.models import QuerySet

from apps.common.base.base_repo import BaseRepo
from apps.common.levels import scope_filters

User = get_user_model()


class UserRepo(BaseRepo[User]):
    """
    用户仓储：
    - 评审门禁、自动指派、评审进度都依赖“某层级某地区的在岗评委”
    - 地区匹配规则与作品一致：Council 匹配大区+区县，Regional 匹配大区，National 不限
    """

    model = User

    def active_judges(self) -> QuerySet:
        return self.filter(role=User.Role.JUDGE, status=User.Status.ACTIVE)

    def judges_for_scope(
            self,
            level: str,
            region: Optional[str] = None,
            council: Optional[str] = None,
    ) -> QuerySet:
        """
        返回与评审范围精确匹配的在岗评委，按主键排序保证轮询指派结果稳定
        """
        filters = scope_filters(level, region, council, prefix="assigned_")
        return self.active_judges().filter(assigned_level=level, **filters).order_by("id")

    def get_judge_or_none(self, judge_id) -> Optional[User]:
        return self.active_judges().filter(pk=judge_id).first()
