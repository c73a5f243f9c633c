"""Structured JSON logging with correlation-id context."""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, TextIO

CORRELATION_ID_CTX: ContextVar[str] = ContextVar("correlation_id", default="")

SERVICE_NAME = "identity"

# Attributes copied from ``extra=`` into the JSON line when present.
DEFAULT_EXTRA_FIELDS = (
    "user_id",
    "email",
    "error_code",
    "task_type",
    "path",
    "method",
    "status_code",
)

_QUIET_LOGGERS = ("pymongo", "urllib3", "httpx")


def redact_email(email: str) -> str:
    """Mask the local part of an email address for log output."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class JsonLogFormatter(logging.Formatter):
    """Render each record as one JSON object per line.

    The ``email`` extra is always masked, whatever the caller passed.
    """

    def __init__(self, extra_fields: tuple[str, ...] = DEFAULT_EXTRA_FIELDS) -> None:
        super().__init__()
        self._extra_fields = extra_fields

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": CORRELATION_ID_CTX.get(),
        }
        for key in self._extra_fields:
            value = getattr(record, key, None)
            if value in (None, ""):
                continue
            payload[key] = redact_email(str(value)) if key == "email" else value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", *, stream: TextIO | None = None) -> None:
    """Route the root logger through ``JsonLogFormatter``; driver chatter stays at WARNING."""
    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setFormatter(JsonLogFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_correlation_id(correlation_id: str) -> None:
    """Store correlation id in request-local context."""
    CORRELATION_ID_CTX.set(correlation_id)
