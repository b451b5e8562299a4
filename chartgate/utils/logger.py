"""chartgate 日志配置

支持人类可读文本和结构化 JSON 两种输出，JSON 格式便于日志平台采集。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

# 通过 logger.info(..., extra={...}) 附加的上下文字段，JSON 输出时原样带出
CONTEXT_FIELDS = ("chart", "version", "repository", "release", "namespace")

_HANDLER_NAME = "chartgate"


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器

    输出示例:
        {"timestamp": "...", "level": "INFO", "logger": "chartgate.core.fetch",
         "message": "...", "chart": "wordpress", "version": "0.8.7"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器（输出到 stderr，重复调用不会叠加 handler）

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR）
        json_output: True 时输出 JSON，适合 gunicorn / 容器环境
    """
    root = logging.getLogger()
    reset_logging()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        fmt = "%(asctime)s [%(levelname)-7s] %(threadName)s %(name)s: %(message)s"
        handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)


def reset_logging() -> None:
    """移除 setup_logging 安装的 handler，其他 handler 保持不动"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if handler.get_name() != _HANDLER_NAME:
            continue
        root.removeHandler(handler)
        handler.close()
