"""
Structured logging.

Two output shapes, same records:
    production           one JSON object per line (aggregator friendly)
    development/testing  short coloured line on stderr

Every record is stamped by ``RequestContextFilter`` with the acting tenant,
user and request path when it is emitted inside a request, so denial and
tenant-resolution warnings can be grouped per tenant without each call site
passing them. Call sites still add ``event_type`` / ``security_code`` as
``extra`` where the event needs a stable tag.

LOG_LEVEL overrides the level (default INFO in production, DEBUG otherwise).
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

STRUCTURED_FIELDS = (
    "event_type",
    "security_code",
    "tenant_id",
    "user_id",
    "method",
    "path",
)


class RequestContextFilter(logging.Filter):
    """Attach tenant / user / path of the current request to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        ctx = getattr(g, "tenant_context", None)
        if getattr(record, "tenant_id", None) is None and ctx is not None:
            record.tenant_id = ctx.tenant_id
        if getattr(record, "user_id", None) is None:
            record.user_id = getattr(g, "jwt_user_id", None)
        record.method = request.method
        record.path = request.path
        return True


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update({
            key: getattr(record, key)
            for key in STRUCTURED_FIELDS
            if getattr(record, key, None) is not None
        })
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """``12:01:33 WARNING  okr_api.services.authorisation [authz_denied] t=1 …``"""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        when = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tags = ""
        if getattr(record, "event_type", None):
            tags += f" [{record.event_type}]"
        if getattr(record, "tenant_id", None) is not None:
            tags += f" t={record.tenant_id}"
        line = f"{color}{when} {record.levelname:<8}{self.RESET} {record.name}{tags} {record.getMessage()}"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger for ``app``'s environment."""
    testing = app.config.get("TESTING", False)
    production = not testing and not app.config.get("DEBUG", False)

    level_name = os.getenv("LOG_LEVEL") or ("INFO" if production else "DEBUG")
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ConsoleFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    # One handler per process, however often create_app runs.
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured (%s, %s)", level_name, "json" if production else "console")
