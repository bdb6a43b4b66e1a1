"""
日志封装：提供统一的日志记录器

- 通过 settings.LOG_PATH 输出到文件（system.log）
- 支持 JSON 和 PLAIN 两种格式（settings.LOG_FORMAT）
- 自动轮转日志文件（按日期）
- 自动注入请求上下文（request_id、user_id、role、username、ip 等）
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from django.conf import settings as django_settings

_configured = False


class CompetitionJSONFormatter(logging.Formatter):
    """
    JSON 格式化器：便于日志平台采集

    输出示例：
    {"timestamp": "2026-03-01 10:00:00", "level": "INFO", "logger": "apps.rounds.services",
     "message": "轮次已关闭", "username": "admin", "ip_address": "127.0.0.1", "round_id": 3}
    """

    def format(self, record: logging.LogRecord) -> str:
        from apps.common.utils.request_context import get_request_context

        ctx = get_request_context()
        log_dict = {
            "timestamp": datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # 上下文字段仅在有值时添加
        if ctx.get("username"):
            log_dict["username"] = ctx["username"]
        if ctx.get("user_id") is not None:
            log_dict["user_id"] = ctx["user_id"]
        if ctx.get("role"):
            log_dict["role"] = ctx["role"]
        if ctx.get("ip"):
            log_dict["ip_address"] = ctx["ip"]
        if ctx.get("path"):
            log_dict["request_path"] = ctx["path"]
        if ctx.get("request_id"):
            log_dict["request_id"] = ctx["request_id"]

        # extra 中的业务字段（round_id、level 等）一并输出
        for key, value in _record_extra(record).items():
            log_dict.setdefault(key, value)

        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_dict, ensure_ascii=False, default=str)


class CompetitionPlainFormatter(logging.Formatter):
    """
    PLAIN 格式化器：人类可读

    格式：{timestamp} {level} {logger} {message} [{username}|{role}|{ip_address}|{request_path}] {extra}

    输出示例：
    2026-03-01 10:00:00 INFO apps.rounds.services 轮次已关闭 [admin|admin|127.0.0.1|/api/rounds/3/close/] round_id=3
    """

    def format(self, record: logging.LogRecord) -> str:
        from apps.common.utils.request_context import get_request_context

        ctx = get_request_context()
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")

        username = ctx.get("username") or "-"
        role = ctx.get("role") or "-"
        ip_address = ctx.get("ip") or "-"
        request_path = ctx.get("path") or "-"
        context_info = f"[{username}|{role}|{ip_address}|{request_path}]"

        log_line = f"{timestamp} {record.levelname} {record.name} {record.getMessage()} {context_info}"

        extra = _record_extra(record)
        if extra:
            log_line += " " + " ".join(f"{k}={v}" for k, v in extra.items())

        if record.exc_info:
            log_line += "\n" + self.formatException(record.exc_info)

        return log_line


# LogRecord 自带的属性，剩余的即为调用方通过 extra 传入的字段
_RESERVED_RECORD_ATTRS = set(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


def _record_extra(record: logging.LogRecord) -> dict:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_")
    }


def get_log_path_from_settings() -> str:
    """基于 settings.LOG_PATH 生成日志文件路径：{LOG_PATH}/system.log"""
    log_dir = getattr(django_settings, "LOG_PATH", "logs")
    log_dir_path = Path(log_dir)
    log_dir_path.mkdir(parents=True, exist_ok=True)
    return str(log_dir_path / "system.log")


class SafeTimedRotatingFileHandler(logging.handlers.TimedRotatingFileHandler):
    """
    轮转失败（文件被占用）时跳过本次轮转，下次写入再尝试
    """

    def doRollover(self):
        try:
            super().doRollover()
        except PermissionError:
            pass


def configure_logging(force: bool = False, *, level: Optional[int] = None, log_file_path: Optional[str] = None) -> None:
    """
    配置日志系统

    配置内容：
    - 按 settings.LOG_FORMAT 选择 PLAIN / JSON 格式
    - 按日期自动轮转（每天午夜），保留 30 天
    - DEBUG 环境额外输出到控制台
    """
    global _configured
    if _configured and not force:
        return

    if level is None:
        level_name = str(getattr(django_settings, "LOG_LEVEL", "INFO")).upper()
        level = getattr(logging, level_name, logging.INFO)
    log_file_path = log_file_path or get_log_path_from_settings()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # 清除已有 handler，关闭旧文件避免资源告警
    for handler in list(root_logger.handlers):
        handler.close()
    root_logger.handlers.clear()

    file_handler = SafeTimedRotatingFileHandler(
        filename=log_file_path,
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8",
        delay=True,  # 延迟打开文件，避免多进程（web/worker/beat）抢占
    )
    file_handler.suffix = "%Y-%m-%d"  # system.log.2026-03-01
    file_handler.setLevel(level)

    if str(getattr(django_settings, "LOG_FORMAT", "plain")).lower() == "json":
        formatter: logging.Formatter = CompetitionJSONFormatter()
    else:
        formatter = CompetitionPlainFormatter()
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    if getattr(django_settings, "DEBUG", False) or os.getenv("DEBUG", "False").lower() == "true":
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    获取 logger 实例

    使用方式：
        logger = get_logger(__name__)
        logger.info("轮次已激活", extra=logger_extra({"round_id": round.id}))
    """
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


SENSITIVE_KEYS = {"password", "token", "otp", "otp_code", "secret", "authorization"}


def sanitize_extra(extra: Optional[dict] = None) -> dict:
    """过滤敏感字段，避免在日志中泄露密码/令牌/验证码"""
    if not extra:
        return {}
    sanitized = {}
    for k, v in extra.items():
        if k.lower() in SENSITIVE_KEYS:
            sanitized[k] = "***"
        else:
            sanitized[k] = v
    return sanitized


def logger_extra(extra: Optional[dict] = None) -> dict:
    """封装 extra，自动过滤敏感字段"""
    return sanitize_extra(extra)
