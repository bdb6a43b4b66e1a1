"""
后台账户管理：在 Django 自带 UserAdmin 基础上展示角色、状态与评审范围
"""

from __future__ import annotations

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    list_display = ("username", "display_name", "role", "status", "assigned_level", "assigned_region",
                    "assigned_council")
    list_filter = ("role", "status", "assigned_level", "assigned_region")
    search_fields = ("username", "first_name", "last_name", "email", "school")
    fieldsets = DjangoUserAdmin.fieldsets + (
        ("角色与地区", {"fields": ("role", "status", "phone", "school", "region", "council")}),
        ("评审范围", {"fields": ("assigned_level", "assigned_region", "assigned_council", "areas_of_focus")}),
    )
