"""
Django settings for Config project.

所有配置均可通过环境变量覆盖，默认值适用于本地开发（SQLite + 内存 Channel Layer）
"""

import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "django-insecure-dev-only-change-me")
DEBUG = _env_bool("DEBUG", False)
ALLOWED_HOSTS = [item.strip() for item in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if item.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "drf_spectacular",
    "channels",
    "apps.accounts",
    "apps.submissions",
    "apps.leaderboards",
    "apps.rounds",
    "apps.tiebreaks",
    "apps.notifications",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "apps.common.middleware.RequestContextMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "Config.urls"
ASGI_APPLICATION = "Config.asgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# 数据库：默认 SQLite，生产通过 DB_ENGINE 切换 PostgreSQL/MySQL（晋级事务依赖行锁）
DB_ENGINE = os.getenv("DB_ENGINE", "django.db.backends.sqlite3")
if DB_ENGINE.endswith("sqlite3"):
    DATABASES = {
        "default": {
            "ENGINE": DB_ENGINE,
            "NAME": os.getenv("DB_NAME", str(BASE_DIR / "db.sqlite3")),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": DB_ENGINE,
            "NAME": os.getenv("DB_NAME", "tsc"),
            "USER": os.getenv("DB_USER", ""),
            "PASSWORD": os.getenv("DB_PASSWORD", ""),
            "HOST": os.getenv("DB_HOST", "127.0.0.1"),
            "PORT": os.getenv("DB_PORT", ""),
            "ATOMIC_REQUESTS": False,
        }
    }

AUTH_USER_MODEL = "accounts.User"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "zh-hans"
TIME_ZONE = os.getenv("TIME_ZONE", "Asia/Shanghai")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = os.getenv("STATIC_ROOT", str(BASE_DIR / "staticfiles"))

# ------------------------
# DRF / OpenAPI
# ------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": ["apps.common.permissions.IsAuthenticated"],
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "EXCEPTION_HANDLER": "apps.common.exception_handler.custom_exception_handler",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Teacher Skills Competition API",
    "DESCRIPTION": "多层级（区县 → 大区 → 全国）教师技能竞赛：轮次、评审、排行榜与晋级",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}

# ------------------------
# Redis / Channels / Celery
# ------------------------
REDIS_ENABLED = _env_bool("REDIS_ENABLED", True)
REDIS_HOST = os.getenv("REDIS_HOST", "127.0.0.1")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_DB_CACHE = int(os.getenv("REDIS_DB_CACHE", 0))
REDIS_DB_BROKER = int(os.getenv("REDIS_DB_BROKER", 1))

if _env_bool("CHANNEL_LAYER_REDIS", False):
    CHANNEL_LAYERS = {
        "default": {
            "BACKEND": "channels_redis.core.RedisChannelLayer",
            "CONFIG": {"hosts": [(REDIS_HOST, REDIS_PORT)]},
        }
    }
else:
    CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", f"redis://{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB_BROKER}")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TIMEZONE = TIME_ZONE

# ------------------------
# 竞赛业务参数
# ------------------------
ROUND_TICK_INTERVAL_SECONDS = int(os.getenv("ROUND_TICK_INTERVAL_SECONDS", 60))
# 锁过期时间略短于 tick 间隔，进程崩溃时不会卡住下一次 tick
ROUND_TICK_LOCK_TTL_SECONDS = int(os.getenv("ROUND_TICK_LOCK_TTL_SECONDS", max(ROUND_TICK_INTERVAL_SECONDS - 5, 5)))
ROUND_REMINDER_INTERVAL_SECONDS = int(os.getenv("ROUND_REMINDER_INTERVAL_SECONDS", 900))
LEADERBOARD_CACHE_TTL = int(os.getenv("LEADERBOARD_CACHE_TTL", 300))
ADVANCEMENT_TX_RETRIES = int(os.getenv("ADVANCEMENT_TX_RETRIES", 3))
QUOTA_MIN = int(os.getenv("QUOTA_MIN", 1))
QUOTA_MAX = int(os.getenv("QUOTA_MAX", 10000))
COMPETITION_YEAR_MIN = int(os.getenv("COMPETITION_YEAR_MIN", 2020))
COMPETITION_YEAR_MAX = int(os.getenv("COMPETITION_YEAR_MAX", 2030))

CELERY_BEAT_SCHEDULE = {
    "rounds-tick": {
        "task": "rounds.tick",
        "schedule": ROUND_TICK_INTERVAL_SECONDS,
    },
    "rounds-reminders": {
        "task": "rounds.reminders",
        "schedule": ROUND_REMINDER_INTERVAL_SECONDS,
    },
}

# ------------------------
# 日志
# ------------------------
LOG_PATH = os.getenv("LOG_PATH", str(BASE_DIR / "logs"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "plain")
# 交由 apps.common.infra.logger.configure_logging 统一配置根日志器
LOGGING_CONFIG = None
