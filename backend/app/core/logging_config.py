"""
Structured logging configuration.

Provides:
    • JSON-formatted logs for production (one object per line)
    • Pretty console logs for development
    • Request-scoped context (request_id, user_id, feed view) attached to
      every record emitted while a request is being served

Feed-specific `extra=` fields are lifted onto the log entry, so a single
source fetch can be followed across the pipeline:

    logger.info("Source %s returned %d records", name, n,
                extra={"source": name, "record_count": n, "duration_ms": ms})

Usage:
    from backend.app.core.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from backend.app.core.config import settings

_request_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar(
    "request_context", default=None
)

# `extra=` keys lifted onto the entry when a record carries them
FEED_LOG_FIELDS = (
    "source", "record_count", "radius_miles", "lat", "lon",
    "duration_ms", "status_code", "endpoint",
)

_PRETTY_FIELDS = ("source", "record_count", "radius_miles")


def set_request_context(**kwargs: Any) -> Token:
    """Bind request-scoped log context; returns a token for reset."""
    return _request_context.set({k: v for k, v in kwargs.items() if v is not None})


def reset_request_context(token: Token) -> None:
    _request_context.reset(token)


def get_request_context() -> Dict[str, Any]:
    return _request_context.get() or {}


def _record_extras(record: logging.LogRecord, keys) -> Dict[str, Any]:
    return {key: getattr(record, key) for key in keys if hasattr(record, key)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for the log shipper."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": settings.APP_NAME,
            "env": settings.ENVIRONMENT,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        # request context first, so explicit extras win on collisions
        entry.update(get_request_context())
        entry.update(_record_extras(record, FEED_LOG_FIELDS))

        if record.exc_info:
            entry["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class PrettyFormatter(logging.Formatter):
    """Coloured one-liners for a local terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        ts = self.formatTime(record, "%H:%M:%S")

        tags = []
        ctx = get_request_context()
        if "request_id" in ctx:
            tags.append(ctx["request_id"][:8])
        if "user_id" in ctx:
            tags.append(f"user={ctx['user_id']}")
        if "view" in ctx:
            tags.append(f"view={ctx['view']}")
        tags.extend(f"{k}={v}" for k, v in _record_extras(record, _PRETTY_FIELDS).items())
        tag_str = f" [{' '.join(tags)}]" if tags else ""

        line = (
            f"{color}{ts} {record.levelname:<8}{self.RESET}"
            f"{tag_str} {record.name}: {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _use_json() -> bool:
    fmt = settings.LOG_FORMAT.lower()
    if fmt == "json":
        return True
    if fmt == "pretty":
        return False
    return settings.is_production


def setup_logging() -> None:
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if _use_json() else PrettyFormatter())
    root.addHandler(handler)

    # one line per upstream call is already logged by the adapters
    for noisy in ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger — call once per module."""
    return logging.getLogger(name)
