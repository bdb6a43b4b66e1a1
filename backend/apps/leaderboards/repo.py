from __future__ import annotations

from typing import Optional

from django.db.models import QuerySet

from apps.common.base.base_repo import BaseRepo

from .models import Leaderboard, LeaderboardEntry, Quota


class QuotaRepo(BaseRepo[Quota]):
    model = Quota

    def get_for(self, year: int, level: str) -> Optional[Quota]:
        return self.get_or_none(year=year, level=level)


class LeaderboardRepo(BaseRepo[Leaderboard]):
    """排行榜仓储：按 (年度, 领域, 层级, 地区键) 定位"""

    model = Leaderboard

    def get_for_scope(self, *, year: int, area_of_focus: str, level: str, location_key: str) -> Optional[Leaderboard]:
        return self.get_or_none(year=year, area_of_focus=area_of_focus, level=level, location_key=location_key)

    def get_or_create_for_scope(self, *, year: int, area_of_focus: str, level: str, location_key: str) -> Leaderboard:
        board, _ = self.model._default_manager.get_or_create(
            year=year, area_of_focus=area_of_focus, level=level, location_key=location_key
        )
        return board

    def for_level(self, *, year: int, level: str) -> QuerySet[Leaderboard]:
        return self.filter(year=year, level=level)


class LeaderboardEntryRepo(BaseRepo[LeaderboardEntry]):
    model = LeaderboardEntry

    def for_board(self, board: Leaderboard) -> QuerySet[LeaderboardEntry]:
        return self.filter(leaderboard=board).order_by("rank")

    def status_by_submission(self, board: Leaderboard) -> dict[int, LeaderboardEntry]:
        """上一版快照：作品 → 条目，用于沿用终态与判断分数是否过期"""
        return {entry.submission_id: entry for entry in self.filter(leaderboard=board)}
