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
        ("submissions", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="TieBreaking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("year", models.PositiveIntegerField(db_index=True, verbose_name="年度")),
                ("level", models.CharField(choices=LEVEL_CHOICES, max_length=16, verbose_name="层级")),
                ("region", models.CharField(blank=True, max_length=100, null=True, verbose_name="大区")),
                ("council", models.CharField(blank=True, max_length=100, null=True, verbose_name="区县")),
                ("area_of_focus", models.CharField(blank=True, default="", max_length=150, verbose_name="领域")),
                ("quota", models.PositiveIntegerField(default=1, verbose_name="胜出名额")),
                ("status", models.CharField(choices=[("active", "投票中"), ("resolved", "已裁决")], db_index=True, default="active", max_length=16, verbose_name="状态")),
                ("winners", models.JSONField(blank=True, default=list, verbose_name="胜出作品")),
                ("results", models.JSONField(blank=True, default=list, verbose_name="计票结果")),
                ("resolved_at", models.DateTimeField(blank=True, null=True, verbose_name="裁决时间")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="创建时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                ("candidates", models.ManyToManyField(related_name="tiebreaks", to="submissions.submission", verbose_name="候选作品")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL, verbose_name="发起人")),
                ("resolved_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL, verbose_name="裁决人")),
            ],
            options={
                "verbose_name": "平局裁决",
                "verbose_name_plural": "平局裁决",
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["year", "level", "status"], name="tiebreak_scope_idx")],
            },
        ),
        migrations.CreateModel(
            name="TieBreakVote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("voted_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="投票时间")),
                ("judge", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="tiebreak_votes", to=settings.AUTH_USER_MODEL, verbose_name="评委")),
                ("submission", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="+", to="submissions.submission", verbose_name="投票作品")),
                ("tiebreak", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="votes", to="tiebreaks.tiebreaking", verbose_name="平局裁决")),
            ],
            options={
                "verbose_name": "平局投票",
                "verbose_name_plural": "平局投票",
                "ordering": ["voted_at", "id"],
                "constraints": [models.UniqueConstraint(fields=("tiebreak", "judge"), name="uniq_tiebreak_vote_judge")],
            },
        ),
    ]
