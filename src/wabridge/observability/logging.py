"""Structured JSON logging with correlation ID support.

Module loggers live under the ``wabridge`` namespace and propagate to a
single JSON handler installed on the package logger. LOG_LEVEL sets the
level (default INFO).
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import IO, Any

from .correlation import get_correlation_id

SERVICE_NAME = "wa-bridge"
PACKAGE_LOGGER = "wabridge"


class JsonFormatter(logging.Formatter):
    """JSON formatter that includes service name and correlation ID."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_obj["correlationId"] = correlation_id

        if record.exc_info and record.exc_info[0] is not None:
            log_obj["exceptionType"] = record.exc_info[0].__name__
            log_obj["exception"] = self.formatException(record.exc_info)

        # Already redacted by safe_log_context at the call site
        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_obj.update(extra_fields)

        return json.dumps(log_obj, default=str)


def _resolve_level() -> int:
    """Read LOG_LEVEL from environment, falling back to INFO."""
    name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _json_handlers(target: logging.Logger) -> list[logging.Handler]:
    return [h for h in target.handlers if isinstance(h.formatter, JsonFormatter)]


def configure_logging(stream: IO[str] | None = None) -> logging.Logger:
    """Install the JSON handler on the package logger.

    Idempotent: the JSON handler is added once (handlers attached by others,
    such as pytest log capture, are left alone); the level is re-read each call.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if not _json_handlers(package_logger):
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(JsonFormatter())
        package_logger.addHandler(handler)
        package_logger.propagate = False
    package_logger.setLevel(_resolve_level())
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger that writes through the package JSON handler.

    Names outside the package (e.g. "__main__") are nested under it.
    """
    configure_logging()
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
