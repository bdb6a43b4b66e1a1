from __future__ import annotations

import django.contrib.auth.validators
import django.utils.timezone
from django.db import migrations, models

import apps.accounts.models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="User",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("is_superuser", models.BooleanField(default=False, help_text="Designates that this user has all permissions without explicitly assigning them.", verbose_name="superuser status")),
                ("username", models.CharField(error_messages={"unique": "A user with that username already exists."}, help_text="Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.", max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name="username")),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="email address")),
                ("is_staff", models.BooleanField(default=False, help_text="Designates whether the user can log into this admin site.", verbose_name="staff status")),
                ("is_active", models.BooleanField(default=True, help_text="Designates whether this user should be treated as active. Unselect this instead of deleting accounts.", verbose_name="active")),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("role", models.CharField(choices=[("teacher", "教师"), ("judge", "评委"), ("admin", "管理员"), ("superadmin", "超级管理员")], db_index=True, default="teacher", max_length=16, verbose_name="角色")),
                ("status", models.CharField(choices=[("active", "正常"), ("inactive", "停用"), ("suspended", "封禁")], db_index=True, default="active", max_length=16, verbose_name="账户状态")),
                ("phone", models.CharField(blank=True, max_length=32, verbose_name="电话")),
                ("school", models.CharField(blank=True, max_length=200, verbose_name="学校")),
                ("region", models.CharField(blank=True, max_length=100, verbose_name="大区")),
                ("council", models.CharField(blank=True, max_length=100, verbose_name="区县")),
                ("assigned_level", models.CharField(blank=True, choices=[("Council", "区县级"), ("Regional", "大区级"), ("National", "全国级")], db_index=True, max_length=16, verbose_name="评审层级")),
                ("assigned_region", models.CharField(blank=True, max_length=100, verbose_name="评审大区")),
                ("assigned_council", models.CharField(blank=True, max_length=100, verbose_name="评审区县")),
                ("areas_of_focus", models.JSONField(blank=True, default=list, verbose_name="擅长领域")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                ("groups", models.ManyToManyField(blank=True, help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.", related_name="user_set", related_query_name="user", to="auth.group", verbose_name="groups")),
                ("user_permissions", models.ManyToManyField(blank=True, help_text="Specific permissions for this user.", related_name="user_set", related_query_name="user", to="auth.permission", verbose_name="user permissions")),
            ],
            options={
                "verbose_name": "用户",
                "verbose_name_plural": "用户",
                "ordering": ["-date_joined"],
                "abstract": False,
            },
            managers=[
                ("objects", apps.accounts.models.CompetitionUserManager()),
            ],
        ),
        migrations.AddIndex(
            model_name="user",
            index=models.Index(fields=["role", "status", "assigned_level"], name="accounts_judge_scope_idx"),
        ),
    ]
