"""
Logging setup for the tracker.

configure_logging(app) installs a single stderr handler on the root logger:
  - LOG_FORMAT "json"      → one JSON object per line (production default)
  - LOG_FORMAT "readable"  → short colored lines (development)

Records passing through the handler are stamped with the current request id
and JWT user by RequestContextFilter. Lifecycle services add incident_id /
work_order_id through ``extra=``, so a single request can be followed from
the access line written by middleware/timing.py down to the state changes.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Record attributes rendered when present
CONTEXT_FIELDS = (
    "request_id",
    "user_id",
    "incident_id",
    "work_order_id",
    "method",
    "path",
    "status",
    "duration_ms",
)

# Shown in readable lines; the access fields are already in the message text
_READABLE_FIELDS = ("request_id", "incident_id", "work_order_id")

NOISY_LOGGERS = ("werkzeug", "sqlalchemy.engine", "alembic")


class RequestContextFilter(logging.Filter):
    """Copy g.request_id and g.jwt_user_id onto records logged inside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "user_id", None) is None:
                record.user_id = getattr(g, "jwt_user_id", None)
        return True


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:00:01 INFO     vic_tracker.services...: message [request_id=... incident_id=7]``"""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:<8}"
        if self.color:
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{self.RESET}"
        line = f"{ts} {level} {record.name}: {record.getMessage()}"

        ids = [
            f"{key}={getattr(record, key)}"
            for key in _READABLE_FIELDS
            if getattr(record, key, None) is not None
        ]
        if ids:
            line += f" [{' '.join(ids)}]"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _resolve_level(app) -> int:
    name = app.config.get("LOG_LEVEL") or ("DEBUG" if app.config.get("DEBUG") else "INFO")
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(app) -> logging.Handler:
    """
    Install the tracker's root handler, replacing one installed by an earlier app.

    Config keys: LOG_LEVEL (default DEBUG with DEBUG on, else INFO) and
    LOG_FORMAT ("json" or "readable").
    """
    level = _resolve_level(app)
    use_json = str(app.config.get("LOG_FORMAT", "readable")).lower() == "json"
    formatter = JSONFormatter() if use_json else ReadableFormatter(color=sys.stderr.isatty())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    handler.vic_tracker_handler = True

    root = logging.getLogger()
    for old in [h for h in root.handlers if getattr(h, "vic_tracker_handler", False)]:
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not app.config.get("TESTING", False):
        app.logger.info(
            "Logging configured: level=%s format=%s",
            logging.getLevelName(level), "json" if use_json else "readable",
        )
    return handler
