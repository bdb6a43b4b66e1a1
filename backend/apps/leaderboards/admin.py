from __future__ import annotations

from django.contrib import admin

from .models import Leaderboard, LeaderboardEntry, Quota


@admin.register(Quota)
class QuotaAdmin(admin.ModelAdmin):
    list_display = ("year", "level", "quota", "created_by", "updated_at")
    list_filter = ("year", "level")


class LeaderboardEntryInline(admin.TabularInline):
    model = LeaderboardEntry
    extra = 0
    fields = ("rank", "teacher_name", "average_score", "total_evaluations", "status")
    readonly_fields = fields
    can_delete = False


@admin.register(Leaderboard)
class LeaderboardAdmin(admin.ModelAdmin):
    """排行榜后台：快照由构建服务生成，后台只读"""

    list_display = ("year", "level", "location_key", "area_of_focus", "total_submissions", "is_finalized",
                    "last_updated")
    list_filter = ("year", "level", "is_finalized")
    search_fields = ("location_key", "area_of_focus")
    readonly_fields = ("total_submissions", "quota", "is_finalized", "finalized_at", "last_updated")
    inlines = [LeaderboardEntryInline]
