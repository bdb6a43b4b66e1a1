from __future__ import annotations

from django.contrib import admin

from .models import Evaluation, Submission, SubmissionAssignment


# Admin 配置：查看参赛作品、评分与指派


class EvaluationInline(admin.TabularInline):
    model = Evaluation
    extra = 0
    fields = ("judge", "level", "total_score", "average_score", "submitted_at")
    readonly_fields = fields
    can_delete = False


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    """作品后台：层级/状态/平均分仅由评分与晋级流程修改，后台只读展示"""

    list_display = ("id", "teacher_name", "year", "level", "region", "council", "area_of_focus", "status",
                    "average_score", "disqualified", "created_at")
    list_filter = ("year", "level", "status", "disqualified", "area_of_focus")
    search_fields = ("teacher_name", "school", "region", "council", "subject")
    readonly_fields = ("level", "status", "average_score", "disqualified", "disqualification_reason",
                       "disqualified_by", "disqualified_at", "created_at", "updated_at")
    inlines = [EvaluationInline]

    def has_delete_permission(self, request, obj=None):
        # 核心流程从不删除作品
        return False


@admin.register(SubmissionAssignment)
class SubmissionAssignmentAdmin(admin.ModelAdmin):
    list_display = ("submission", "judge", "level", "region", "council", "assigned_at", "judge_notified")
    list_filter = ("level", "judge_notified")
    search_fields = ("judge__username", "region", "council")
