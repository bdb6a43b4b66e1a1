from __future__ import annotations

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone

LEVEL_CHOICES = [("Council", "区县级"), ("Regional", "大区级"), ("National", "全国级")]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CompetitionRound",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("year", models.PositiveIntegerField(db_index=True, verbose_name="年度")),
                ("level", models.CharField(choices=LEVEL_CHOICES, max_length=16, verbose_name="层级")),
                ("region", models.CharField(blank=True, max_length=100, null=True, verbose_name="大区")),
                ("council", models.CharField(blank=True, max_length=100, null=True, verbose_name="区县")),
                ("status", models.CharField(choices=[("pending", "未开始"), ("active", "进行中"), ("ended", "已结束待关闭"), ("closed", "已关闭")], db_index=True, default="pending", max_length=16, verbose_name="状态")),
                ("timing_type", models.CharField(choices=[("fixed_time", "固定截止时间"), ("countdown", "倒计时")], max_length=16, verbose_name="计时方式")),
                ("end_time", models.DateTimeField(blank=True, null=True, verbose_name="截止时间")),
                ("start_time", models.DateTimeField(blank=True, null=True, verbose_name="开始时间")),
                ("countdown_duration", models.DurationField(blank=True, null=True, verbose_name="倒计时时长")),
                ("auto_advance", models.BooleanField(default=True, verbose_name="自动晋级")),
                ("wait_for_all_judges", models.BooleanField(default=True, verbose_name="等待评委完成")),
                ("reminder_enabled", models.BooleanField(default=True, verbose_name="启用提醒")),
                ("reminder_frequency", models.CharField(choices=[("daily", "每天"), ("twice_daily", "每天两次"), ("hourly", "每小时")], default="daily", max_length=16, verbose_name="提醒频率")),
                ("last_reminder_at", models.DateTimeField(blank=True, null=True, verbose_name="上次提醒时间")),
                ("leaderboard_visibility", models.CharField(choices=[("live", "实时"), ("frozen", "冻结")], default="live", max_length=8, verbose_name="排行榜可见性")),
                ("frozen_snapshot", models.JSONField(blank=True, null=True, verbose_name="冻结快照")),
                ("pending_submissions_snapshot", models.JSONField(blank=True, default=list, verbose_name="待评作品快照")),
                ("snapshot_created_at", models.DateTimeField(blank=True, null=True, verbose_name="快照时间")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="附加信息")),
                ("ended_at", models.DateTimeField(blank=True, null=True, verbose_name="实际结束时间")),
                ("closed_at", models.DateTimeField(blank=True, null=True, verbose_name="关闭时间")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="创建时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                ("closed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL, verbose_name="关闭人")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL, verbose_name="创建人")),
            ],
            options={
                "verbose_name": "比赛轮次",
                "verbose_name_plural": "比赛轮次",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["year", "level", "status"], name="round_year_level_status_idx"),
                    models.Index(fields=["year", "level", "region", "council"], name="round_scope_idx"),
                    models.Index(fields=["status", "end_time"], name="round_status_end_idx"),
                ],
            },
        ),
    ]
