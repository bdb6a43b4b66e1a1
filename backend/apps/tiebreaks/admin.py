from __future__ import annotations

from django.contrib import admin

from .models import TieBreaking, TieBreakVote


class TieBreakVoteInline(admin.TabularInline):
    model = TieBreakVote
    extra = 0
    fields = ("judge", "submission", "voted_at")
    readonly_fields = fields
    can_delete = False


@admin.register(TieBreaking)
class TieBreakingAdmin(admin.ModelAdmin):
    list_display = ("id", "year", "level", "region", "council", "area_of_focus", "quota", "status", "resolved_at")
    list_filter = ("year", "level", "status")
    readonly_fields = ("winners", "results", "resolved_at", "resolved_by")
    filter_horizontal = ("candidates",)
    inlines = [TieBreakVoteInline]
