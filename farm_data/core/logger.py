# ==============================================================================
# LOGGING - Structured Application and Audit Logging
# ==============================================================================
# stdlib logging configured with a JSON or text formatter
# AuditLogger adds security and database event types on top
# ==============================================================================

from __future__ import annotations

import json
import logging
import sys
import time
from typing import Any, Dict, Optional

from farm_data.core.settings import settings


class JsonFormatter(logging.Formatter):
    """
    Format log records as single-line JSON entries.

    Structured context passed through ``extra={"context": {...}}``
    is emitted under the ``context`` key.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": time.strftime(
                "%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)
            ) + f".{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        event_type = getattr(record, "event_type", None)
        if event_type:
            entry["type"] = event_type

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Configure the root logger once for the process.

    Args:
        level: Logging level name, defaults to LOG_LEVEL
        fmt: ``json`` or ``text``, defaults to LOG_FORMAT
    """
    level = (level or settings.LOG_LEVEL).upper()
    fmt = (fmt or settings.LOG_FORMAT).lower()

    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


class AuditLogger:
    """
    Event logger used by the data access layer.

    Wraps a stdlib logger and tags each record with an event type
    (``info``, ``warn``, ``error``, ``security``, ``database``).
    A failure inside logging never propagates to the caller.

    Example:
        >>> audit = AuditLogger("farm_data.database")
        >>> audit.log_database("query", "farms", 12.5, True, {"rows": 3})
    """

    def __init__(self, name: str = "farm_data.audit") -> None:
        self._logger = logging.getLogger(name)

    def _emit(
        self,
        level: int,
        event_type: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            self._logger.log(
                level,
                message,
                extra={"event_type": event_type, "context": context or {}},
            )
        except Exception as e:
            sys.stderr.write(f"Logging failure: {e}\n")

    def info(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._emit(logging.INFO, "info", message, context)

    def warn(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._emit(logging.WARNING, "warn", message, context)

    def error(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._emit(logging.ERROR, "error", message, context)

    def security(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """Security events are always logged at WARNING."""
        self._emit(logging.WARNING, "security", message, context)

    def log_database(
        self,
        operation: str,
        table: Optional[str],
        duration_ms: float,
        success: bool,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record the outcome of one database operation."""
        payload = {
            "operation": operation,
            "table": table,
            "duration_ms": round(duration_ms, 2),
            "success": success,
        }
        if context:
            payload.update(context)
        self._emit(
            logging.INFO if success else logging.ERROR,
            "database",
            f"Database {operation} on {table or 'raw'} ({duration_ms:.2f}ms)",
            payload,
        )


audit_logger = AuditLogger()
