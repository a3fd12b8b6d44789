"""
Structured logging setup.

Provides JSON and text logging formatters for consistent log output.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from config import settings

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class JsonFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.

    Produces single-line JSON objects for easy parsing by log aggregators.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


def setup_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """
    Configure application logging.

    Args:
        level: Log level name; defaults to settings.LOG_LEVEL.
        log_format: 'json' or 'text'; defaults to settings.LOG_FORMAT.

    Returns:
        The root logger configured with appropriate handlers.
    """
    level = level or settings.LOG_LEVEL
    log_format = log_format or settings.LOG_FORMAT

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, level))

    # Remove existing handlers
    logger.handlers = []

    handler = logging.StreamHandler()

    if log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)

    return logger
