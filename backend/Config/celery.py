from __future__ import annotations

import os

from celery import Celery
from django.conf import settings

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "Config.settings")

# 创建 Celery 应用，使用 Django 配置中的 CELERY_* 变量
app = Celery("Config")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# 统一时区，与 Django 设置保持一致
if getattr(settings, "TIME_ZONE", None):
    app.conf.timezone = settings.TIME_ZONE

# Celery Beat 调度：settings 中已声明时沿用，缺失的条目按默认间隔补齐
app.conf.beat_schedule = dict(getattr(settings, "CELERY_BEAT_SCHEDULE", {}))
if "rounds-tick" not in app.conf.beat_schedule:
    app.conf.beat_schedule["rounds-tick"] = {
        "task": "rounds.tick",
        "schedule": getattr(settings, "ROUND_TICK_INTERVAL_SECONDS", 60),
    }
if "rounds-reminders" not in app.conf.beat_schedule:
    app.conf.beat_schedule["rounds-reminders"] = {
        "task": "rounds.reminders",
        "schedule": getattr(settings, "ROUND_REMINDER_INTERVAL_SECONDS", 900),
    }
