"""
Logging setup for the HR assistant.

Two renderings of the same records:
    development / testing → one coloured line per record, request id and caller appended
    production            → one JSON object per line for the log shipper

``LOG_LEVEL`` overrides the level. The SQL audit trail
(``peoplecore.audit.sql``) is additionally written to ``SQL_AUDIT_LOG_FILE``
as JSON lines outside of tests.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

SQL_AUDIT_LOGGER = "peoplecore.audit.sql"

# Attributes passed through ``extra=`` by the timing middleware, the chat
# orchestrator and the audit writer
CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "caller_id",
    "caller_role",
    "intent",
)

QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "httpx", "httpcore", "openai", "anthropic", "urllib3")


def _context(record: logging.LogRecord) -> dict:
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:00:01 INFO     peoplecore.ai.assistant: message  [ab12cd emp-1 84ms]``"""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        ctx = _context(record)
        tags = [str(ctx[k]) for k in ("request_id", "caller_id") if k in ctx]
        if "duration_ms" in ctx:
            tags.append(f"{ctx['duration_ms']:.0f}ms")
        if tags:
            line += f"  [{' '.join(tags)}]"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _attach_audit_file(path: str):
    audit_logger = logging.getLogger(SQL_AUDIT_LOGGER)
    for handler in list(audit_logger.handlers):
        if isinstance(handler, logging.FileHandler):
            audit_logger.removeHandler(handler)
            handler.close()

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setFormatter(JSONFormatter())
    file_handler.setLevel(logging.INFO)
    audit_logger.addHandler(file_handler)


def configure_logging(app):
    """
    Install a single stderr handler on the root logger.

    Production (neither DEBUG nor TESTING) logs JSON at INFO; everything
    else logs readable lines at DEBUG unless ``LOG_LEVEL`` says otherwise.
    """
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()  # app factory runs repeatedly under tests
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    audit_path = app.config.get("SQL_AUDIT_LOG_FILE")
    if audit_path and not testing:
        _attach_audit_file(audit_path)

    app.logger.setLevel(level)
    if not testing:
        app.logger.info("Logging ready: level=%s format=%s", level_name, "json" if production else "readable")
