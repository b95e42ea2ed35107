"""Structured JSON logging with redaction of secret-looking fields."""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

_INTERNAL_LOGRECORD_KEYS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "taskName",
    }
)

SENSITIVE_KEYS: frozenset[str] = frozenset(
    {"api_key", "apikey", "authorization", "password", "secret", "token", "credential"}
)

REDACTED = "***REDACTED***"


def redact(value: Any, *, key: str | None = None, max_str: int = 4_000) -> Any:
    if key and key.lower() in SENSITIVE_KEYS:
        return REDACTED
    if isinstance(value, str):
        return value if len(value) <= max_str else value[:max_str] + "...(truncated)"
    if isinstance(value, dict):
        return {str(k): redact(v, key=str(k), max_str=max_str) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(v, key=key, max_str=max_str) for v in value]
    return value


class JSONFormatter(logging.Formatter):
    """One JSON object per line; `extra=` fields are merged after redaction."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for key, value in record.__dict__.items():
            if key in _INTERNAL_LOGRECORD_KEYS:
                continue
            payload[key] = redact(value, key=key)

        if record.exc_info:
            exc_type, exc, _ = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc) if exc else None,
                "stacktrace": traceback.format_exception(*record.exc_info),
            }
        return json.dumps(payload, ensure_ascii=False, default=str, separators=(",", ":"))


def setup_logging(level: str | None = None, *, use_json: bool | None = None) -> logging.Logger:
    """Configure the package logger once. Defaults come from LOG_LEVEL / LOG_JSON."""

    log = logging.getLogger("private_assistant")
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if use_json is None:
        use_json = os.getenv("LOG_JSON", "true").lower() not in {"0", "false", "no"}

    log.setLevel(getattr(logging, level_name, logging.INFO))
    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            JSONFormatter() if use_json else logging.Formatter("%(levelname)s %(name)s %(message)s")
        )
        log.addHandler(handler)
    return log
