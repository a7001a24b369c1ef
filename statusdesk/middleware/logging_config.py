"""
Logging setup for statusdesk.

Every record emitted while a request is in flight is stamped with the
request id and the authenticated user id, so service log lines such as
"Time log created" can be joined to the access line written by the timing
middleware.

Output format is picked by ``LOG_FORMAT`` ("json" or "text"); when unset,
production logs JSON and everything else logs text.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Keys a service may pass through ``extra={...}``; listed in output order.
CONTEXT_FIELDS = (
    "request_id",
    "user_id",
    "entry_id",
    "item_id",
    "operation",
    "period",
    "cutoff",
    "rows",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "endpoint",
)

QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "flask_limiter")


def record_context(record: logging.LogRecord) -> dict:
    """The context fields present on ``record``, in ``CONTEXT_FIELDS`` order."""
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if getattr(record, key, None) is not None}


class RequestContextFilter(logging.Filter):
    """Copy ``g.request_id`` and the JWT subject onto records that lack them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = g.get("request_id")
            if getattr(record, "user_id", None) is None:
                record.user_id = g.get("jwt_user_id")
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line; timestamps come from the record itself."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(record_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger: message key=value ...`` for terminals."""

    LEVEL_COLORS = {
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[31;1m",
    }
    RESET = "\033[0m"

    def __init__(self, color: bool = False):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:<7}"
        if self.color and record.levelname in self.LEVEL_COLORS:
            level = f"{self.LEVEL_COLORS[record.levelname]}{level}{self.RESET}"
        line = f"{stamp} {level} {record.name}: {record.getMessage()}"

        context = record_context(record)
        if context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger for ``app``."""
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = str(app.config.get("LOG_LEVEL") or ("INFO" if production else "DEBUG")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    fmt = (app.config.get("LOG_FORMAT") or ("json" if production else "text")).lower()
    if fmt == "json":
        formatter = JSONFormatter()
    else:
        formatter = TextFormatter(color=sys.stderr.isatty())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())

    # replaced, not appended, so a second create_app() does not double every line
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    app.logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if not testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
