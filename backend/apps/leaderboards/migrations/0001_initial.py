from __future__ import annotations

from django.conf import settings
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone

LEVEL_CHOICES = [("Council", "区县级"), ("Regional", "大区级"), ("National", "全国级")]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("submissions", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Quota",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("year", models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(2020), django.core.validators.MaxValueValidator(2030)], verbose_name="年度")),
                ("level", models.CharField(choices=LEVEL_CHOICES, max_length=16, verbose_name="层级")),
                ("quota", models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(10000)], verbose_name="晋级名额")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="创建时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL, verbose_name="设置人")),
            ],
            options={
                "verbose_name": "晋级配额",
                "verbose_name_plural": "晋级配额",
                "ordering": ["-year", "level"],
            },
        ),
        migrations.CreateModel(
            name="Leaderboard",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("year", models.PositiveIntegerField(db_index=True, verbose_name="年度")),
                ("area_of_focus", models.CharField(max_length=150, verbose_name="领域")),
                ("level", models.CharField(choices=LEVEL_CHOICES, max_length=16, verbose_name="层级")),
                ("location_key", models.CharField(max_length=220, verbose_name="地区键")),
                ("total_submissions", models.PositiveIntegerField(default=0, verbose_name="上榜作品数")),
                ("quota", models.PositiveIntegerField(blank=True, null=True, verbose_name="配额快照")),
                ("is_finalized", models.BooleanField(default=False, verbose_name="已定榜")),
                ("finalized_at", models.DateTimeField(blank=True, null=True, verbose_name="定榜时间")),
                ("last_updated", models.DateTimeField(default=django.utils.timezone.now, verbose_name="最近重算时间")),
            ],
            options={
                "verbose_name": "排行榜",
                "verbose_name_plural": "排行榜",
                "ordering": ["year", "level", "location_key", "area_of_focus"],
            },
        ),
        migrations.CreateModel(
            name="LeaderboardEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("teacher_name", models.CharField(blank=True, max_length=120, verbose_name="教师姓名")),
                ("school", models.CharField(blank=True, max_length=200, verbose_name="学校")),
                ("region", models.CharField(blank=True, max_length=100, verbose_name="大区")),
                ("council", models.CharField(blank=True, max_length=100, null=True, verbose_name="区县")),
                ("category", models.CharField(blank=True, max_length=100, verbose_name="类别")),
                ("class_level", models.CharField(blank=True, max_length=100, verbose_name="年级")),
                ("subject", models.CharField(blank=True, max_length=100, verbose_name="学科")),
                ("area_of_focus", models.CharField(max_length=150, verbose_name="领域")),
                ("rank", models.PositiveIntegerField(verbose_name="名次")),
                ("average_score", models.FloatField(default=0, verbose_name="平均分")),
                ("total_evaluations", models.PositiveIntegerField(default=0, verbose_name="评分数")),
                ("submission_created_at", models.DateTimeField(verbose_name="作品提交时间")),
                ("status", models.CharField(choices=[("evaluated", "已评分"), ("promoted", "已晋级"), ("eliminated", "已淘汰")], default="evaluated", max_length=16, verbose_name="状态")),
                ("leaderboard", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="entries", to="leaderboards.leaderboard", verbose_name="排行榜")),
                ("submission", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="leaderboard_entries", to="submissions.submission", verbose_name="作品")),
                ("teacher", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="+", to=settings.AUTH_USER_MODEL, verbose_name="教师")),
            ],
            options={
                "verbose_name": "榜单条目",
                "verbose_name_plural": "榜单条目",
                "ordering": ["leaderboard", "rank"],
            },
        ),
        migrations.AddConstraint(
            model_name="quota",
            constraint=models.UniqueConstraint(fields=("year", "level"), name="uniq_quota_year_level"),
        ),
        migrations.AddConstraint(
            model_name="leaderboard",
            constraint=models.UniqueConstraint(fields=("year", "area_of_focus", "level", "location_key"), name="uniq_leaderboard_scope"),
        ),
        migrations.AddIndex(
            model_name="leaderboard",
            index=models.Index(fields=["year", "level", "location_key"], name="leaderboard_location_idx"),
        ),
        migrations.AddConstraint(
            model_name="leaderboardentry",
            constraint=models.UniqueConstraint(fields=("leaderboard", "submission"), name="uniq_leaderboard_entry_submission"),
        ),
    ]
