from __future__ import annotations

from django.db import migrations, models
import django.db.models.deletion
from django.conf import settings
from django.db.models import Q


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("type", models.CharField(choices=[("submission_promoted", "作品晋级"), ("submission_eliminated", "作品未晋级"), ("judge_assigned", "评审指派"), ("evaluation_reminder", "评审提醒"), ("round_closed", "轮次关闭")], max_length=64, verbose_name="通知类型")),
                ("title", models.CharField(max_length=200, verbose_name="标题")),
                ("body", models.TextField(blank=True, default="", verbose_name="正文")),
                ("payload", models.JSONField(blank=True, default=dict, verbose_name="附加数据")),
                ("dedup_key", models.CharField(blank=True, db_index=True, default="", max_length=255, verbose_name="去重键")),
                ("read_at", models.DateTimeField(blank=True, null=True, verbose_name="已读时间")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="创建时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="notifications", to=settings.AUTH_USER_MODEL, verbose_name="接收用户")),
            ],
            options={
                "verbose_name": "通知",
                "verbose_name_plural": "通知",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.AddIndex(
            model_name="notification",
            index=models.Index(fields=["user", "read_at"], name="notif_user_read_idx"),
        ),
        migrations.AddIndex(
            model_name="notification",
            index=models.Index(fields=["user", "type", "created_at"], name="notif_user_type_idx"),
        ),
        migrations.AddConstraint(
            model_name="notification",
            constraint=models.UniqueConstraint(condition=~Q(("dedup_key", "")), fields=("user", "dedup_key"), name="uniq_notification_user_dedup_key"),
        ),
    ]
