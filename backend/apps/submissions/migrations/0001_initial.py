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
            name="Submission",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("teacher_name", models.CharField(blank=True, max_length=120, verbose_name="教师姓名")),
                ("school", models.CharField(blank=True, max_length=200, verbose_name="学校")),
                ("region", models.CharField(db_index=True, max_length=100, verbose_name="大区")),
                ("council", models.CharField(blank=True, db_index=True, max_length=100, null=True, verbose_name="区县")),
                ("year", models.PositiveIntegerField(db_index=True, verbose_name="年度")),
                ("category", models.CharField(blank=True, max_length=100, verbose_name="类别")),
                ("class_level", models.CharField(blank=True, max_length=100, verbose_name="年级")),
                ("subject", models.CharField(blank=True, max_length=100, verbose_name="学科")),
                ("area_of_focus", models.CharField(db_index=True, max_length=150, verbose_name="领域")),
                ("level", models.CharField(choices=LEVEL_CHOICES, db_index=True, default="Council", max_length=16, verbose_name="层级")),
                ("status", models.CharField(choices=[("pending", "待提交"), ("submitted", "已提交"), ("under_review", "评审中"), ("evaluated", "已评分"), ("approved", "已通过"), ("promoted", "已晋级"), ("eliminated", "已淘汰")], db_index=True, default="submitted", max_length=20, verbose_name="状态")),
                ("average_score", models.FloatField(default=0, verbose_name="平均分")),
                ("disqualified", models.BooleanField(db_index=True, default=False, verbose_name="已取消资格")),
                ("disqualification_reason", models.TextField(blank=True, default="", verbose_name="取消资格原因")),
                ("disqualified_at", models.DateTimeField(blank=True, null=True, verbose_name="取消资格时间")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="提交时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                ("disqualified_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL, verbose_name="取消资格操作人")),
                ("teacher", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="submissions", to=settings.AUTH_USER_MODEL, verbose_name="教师")),
            ],
            options={
                "verbose_name": "参赛作品",
                "verbose_name_plural": "参赛作品",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Evaluation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("level", models.CharField(choices=LEVEL_CHOICES, db_index=True, max_length=16, verbose_name="评分层级")),
                ("scores", models.JSONField(default=dict, verbose_name="分项得分")),
                ("total_score", models.FloatField(default=0, verbose_name="总分")),
                ("average_score", models.FloatField(default=0, verbose_name="平均分")),
                ("comments", models.TextField(blank=True, default="", verbose_name="评语")),
                ("submitted_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="提交时间")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="创建时间")),
                ("judge", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="evaluations", to=settings.AUTH_USER_MODEL, verbose_name="评委")),
                ("submission", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="evaluations", to="submissions.submission", verbose_name="作品")),
            ],
            options={
                "verbose_name": "评分",
                "verbose_name_plural": "评分",
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="SubmissionAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("level", models.CharField(choices=LEVEL_CHOICES, db_index=True, max_length=16, verbose_name="层级")),
                ("region", models.CharField(db_index=True, max_length=100, verbose_name="大区")),
                ("council", models.CharField(blank=True, max_length=100, null=True, verbose_name="区县")),
                ("assigned_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="指派时间")),
                ("judge_notified", models.BooleanField(default=False, verbose_name="已通知评委")),
                ("judge", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="assignments", to=settings.AUTH_USER_MODEL, verbose_name="评委")),
                ("submission", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="assignment", to="submissions.submission", verbose_name="作品")),
            ],
            options={
                "verbose_name": "评审指派",
                "verbose_name_plural": "评审指派",
                "ordering": ["-assigned_at"],
            },
        ),
        migrations.AddIndex(
            model_name="submission",
            index=models.Index(fields=["year", "level", "region", "council"], name="subm_scope_idx"),
        ),
        migrations.AddIndex(
            model_name="submission",
            index=models.Index(fields=["year", "level", "area_of_focus"], name="subm_area_idx"),
        ),
        migrations.AddConstraint(
            model_name="evaluation",
            constraint=models.UniqueConstraint(fields=("submission", "judge"), name="uniq_evaluation_submission_judge"),
        ),
        migrations.AddIndex(
            model_name="submissionassignment",
            index=models.Index(fields=["level", "region", "council"], name="assign_scope_idx"),
        ),
    ]
