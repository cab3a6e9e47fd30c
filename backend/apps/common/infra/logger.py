"""
日志封装：提供统一的日志记录器

- 日志目录来自 settings.LOG_PATH，文件名固定为 system.log
- 支持 JSON 和 PLAIN 两种格式（LOG_FORMAT=json|plain）
- 自动按日期轮转日志文件
- 自动注入请求上下文（request_id、user_id、username、role、ip、path）
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

# LogRecord 自带属性，其余即为 logger_extra 传入的业务字段
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}


def record_extra(record: logging.LogRecord) -> dict:
    """提取调用方通过 extra 附加的业务字段（event_id、team_id 等）"""
    return {k: v for k, v in vars(record).items() if k not in _RESERVED_ATTRS and not k.startswith("_")}


class JSONLogFormatter(logging.Formatter):
    """
    JSON 格式化器，单行输出

    输出示例：
    {"timestamp": "2026-03-02 10:00:00", "level": "INFO", "logger": "apps.judging.scoring",
     "message": "队伍得分已重算", "username": "judge01", "role": "judge", "ip_address": "127.0.0.1"}
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
        fields = record_extra(record)
        if fields:
            log_dict["extra"] = fields
        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_dict, ensure_ascii=False, default=str)


class PlainLogFormatter(logging.Formatter):
    """
    纯文本格式化器

    格式：{timestamp} {level} {logger} {message} [{username}|{role}|{ip_address}|{request_path}] key=value ...
    """

    def format(self, record: logging.LogRecord) -> str:
        from apps.common.utils.request_context import get_request_context

        ctx = get_request_context()
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        context_info = "[{}|{}|{}|{}]".format(
            ctx.get("username") or "-",
            ctx.get("role") or "-",
            ctx.get("ip") or "-",
            ctx.get("path") or "-",
        )
        log_line = f"{timestamp} {record.levelname} {record.name} {record.getMessage()} {context_info}"
        fields = record_extra(record)
        if fields:
            log_line += " " + " ".join(f"{k}={v}" for k, v in fields.items())
        if record.exc_info:
            log_line += "\n" + self.formatException(record.exc_info)
        return log_line


def get_log_path_from_settings() -> str:
    """基于 settings.LOG_PATH 生成日志文件路径"""
    log_dir_path = Path(getattr(django_settings, "LOG_PATH", "logs"))
    log_dir_path.mkdir(parents=True, exist_ok=True)
    return str(log_dir_path / "system.log")


class SafeTimedRotatingFileHandler(logging.handlers.TimedRotatingFileHandler):
    """
    轮转失败（Windows 文件占用）时跳过本次轮转，下次写入再尝试
    """

    def doRollover(self):
        try:
            super().doRollover()
        except PermissionError:
            pass


def configure_logging(force: bool = False, *, level: Optional[int] = None, log_file_path: Optional[str] = None) -> None:
    """
    配置日志系统：
    - 每天午夜轮转，保留 30 天
    - DEBUG=true 时额外输出到控制台

    参数：
        force: 是否强制重新配置（默认只配置一次）
    """
    global _configured
    if _configured and not force:
        return

    log_level = level if level is not None else getattr(logging, str(getattr(django_settings, "LOG_LEVEL", "INFO")).upper(), logging.INFO)
    log_file_path = log_file_path if log_file_path is not None else get_log_path_from_settings()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        handler.close()
    root_logger.handlers.clear()

    file_handler = SafeTimedRotatingFileHandler(
        filename=log_file_path,
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8",
        delay=True,  # 延迟打开文件，避免多进程抢占导致轮转失败
    )
    file_handler.suffix = "%Y-%m-%d"
    file_handler.setLevel(log_level)

    if str(getattr(django_settings, "LOG_FORMAT", "plain")).lower() == "json":
        formatter: logging.Formatter = JSONLogFormatter()
    else:
        formatter = PlainLogFormatter()
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    if os.getenv("DEBUG", "False").lower() == "true":
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
        logger.info("队伍得分已重算", extra=logger_extra({"team_id": 1}))
    """
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


SENSITIVE_KEYS = {"password", "token", "access", "refresh", "authorization"}


def sanitize_extra(extra: Optional[dict] = None) -> dict:
    """
    过滤敏感字段，避免在日志中泄露密码/Token
    """
    if not extra:
        return {}
    return {k: ("***" if k.lower() in SENSITIVE_KEYS else v) for k, v in extra.items()}


def logger_extra(extra: Optional[dict] = None) -> dict:
    """封装 extra，自动过滤敏感字段"""
    return sanitize_extra(extra)
