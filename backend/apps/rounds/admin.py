from __future__ import annotations

from django.contrib import admin

from .models import CompetitionRound


@admin.register(CompetitionRound)
class CompetitionRoundAdmin(admin.ModelAdmin):
    """轮次后台：状态只能经由轮次服务流转，后台不允许直接修改"""

    list_display = ("id", "year", "level", "region", "council", "status", "timing_type", "end_time",
                    "auto_advance", "wait_for_all_judges", "leaderboard_visibility")
    list_filter = ("year", "level", "status", "timing_type")
    search_fields = ("region", "council")
    readonly_fields = ("status", "start_time", "ended_at", "closed_at", "closed_by", "frozen_snapshot",
                       "pending_submissions_snapshot", "snapshot_created_at", "last_reminder_at", "created_by")
