"""Logging setup for GrowthGarden: JSON lines in deployed environments, coloured text locally."""

from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import Any, Dict

_LOCAL_ENVIRONMENTS = {"local", "dev", "development", "test"}

# Third-party loggers that are chatty at DEBUG.
_QUIET_LOGGERS = ("asyncpg", "httpx", "httpcore", "openai", "uvicorn.access")

_ANSI = {
    "red": "\033[31m",
    "yellow": "\033[33m",
    "green": "\033[32m",
    "cyan": "\033[36m",
}

# LogRecord attributes that never belong in the JSON payload.
_RECORD_INTERNALS = frozenset(
    {
        "msg", "args", "levelname", "levelno", "pathname", "filename", "module",
        "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created",
        "msecs", "relativeCreated", "thread", "threadName", "processName", "process",
        "taskName", "name", "message",
    }
)

_DSN_PASSWORD = re.compile(r"(?P<prefix>[a-zA-Z][a-zA-Z0-9+.-]*://[^:/@\s]+:)(?P<secret>[^@\s]+)@")


def _environment() -> str:
    return os.getenv("GROWTHGARDEN_ENVIRONMENT", os.getenv("ENVIRONMENT", "development")).lower()


def _color_enabled() -> bool:
    override = os.getenv("GROWTHGARDEN_LOG_COLOR")
    if override:
        return override == "1"
    return _environment() in _LOCAL_ENVIRONMENTS


COLOR_ENABLED = _color_enabled()


def colorize(text: str, color: str = "red") -> str:
    if not COLOR_ENABLED or color not in _ANSI:
        return text
    return f"{_ANSI[color]}{text}\033[0m"


def mask_dsn(value: str | None) -> str:
    """Hide the password portion of a connection string."""

    if not value:
        return ""
    return _DSN_PASSWORD.sub(lambda match: f"{match.group('prefix')}****@", value)


class DsnMaskingFilter(logging.Filter):
    """Scrub database passwords from rendered messages before any handler sees them."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_dsn(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra=`` fields become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value) for key, value in record.__dict__.items() if key not in _RECORD_INTERNALS
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ColorTextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        rendered = super().format(record)
        if record.levelno >= logging.ERROR:
            return colorize(rendered, "red")
        if record.levelno >= logging.WARNING:
            return colorize(rendered, "yellow")
        return rendered


def configure_logging() -> None:
    """Install the root handler.

    ``GROWTHGARDEN_LOG_FORMAT`` picks ``json`` (default) or ``text``;
    ``GROWTHGARDEN_LOG_LEVEL`` overrides the level, which is DEBUG locally and
    INFO elsewhere.
    """

    default_level = "DEBUG" if _environment() in _LOCAL_ENVIRONMENTS else "INFO"
    level = os.getenv("GROWTHGARDEN_LOG_LEVEL", default_level).upper()
    formatter = "text" if os.getenv("GROWTHGARDEN_LOG_FORMAT", "json").lower() == "text" else "json"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"mask_dsn": {"()": DsnMaskingFilter}},
            "formatters": {
                "json": {"()": JsonFormatter},
                "text": {
                    "()": ColorTextFormatter,
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter,
                    "filters": ["mask_dsn"],
                    "level": level,
                }
            },
            "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
            "root": {"handlers": ["console"], "level": level},
        }
    )


__all__ = [
    "ColorTextFormatter",
    "DsnMaskingFilter",
    "JsonFormatter",
    "colorize",
    "configure_logging",
    "mask_dsn",
]
