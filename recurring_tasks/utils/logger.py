"""
Structured logging for the recurring task engine.

Each record is rendered as one JSON document so sweep runs can be grepped
and aggregated by job, rule or status.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional

from recurring_tasks.config import LOG_LEVEL
from recurring_tasks.utils.dates import utc_now


class JsonFormatter(logging.Formatter):
    """Formats records carrying a ``fields`` dict as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        document = {
            "timestamp": utc_now().isoformat(),
            "level": record.levelname,
            "service": record.name,
            "message": record.getMessage(),
        }
        document.update(getattr(record, "fields", {}))
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        # Datetimes and other non-JSON values are rendered with str()
        return json.dumps(document, default=str)


class StructuredLogger:
    """Logger that attaches keyword arguments to the record as JSON fields."""

    def __init__(self, name: str, level: int = logging.INFO, context: Optional[Dict[str, Any]] = None):
        """
        Args:
            name: Logger name, reported as ``service``
            level: Logging level
            context: Fields added to every record from this logger
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.context = dict(context or {})

        if not any(isinstance(h.formatter, JsonFormatter) for h in self.logger.handlers):
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JsonFormatter())
            self.logger.addHandler(handler)
            # The JSON handler is the only output for these records
            self.logger.propagate = False

    def bind(self, **context) -> "StructuredLogger":
        """A logger that adds ``context`` to every record, e.g. ``bind(task_id=7)``."""
        return StructuredLogger(self.logger.name, self.logger.level, {**self.context, **context})

    def _emit(self, level: int, message: str, exc_info: bool = False, **fields):
        if self.logger.isEnabledFor(level):
            self.logger.log(level, message, exc_info=exc_info, extra={"fields": {**self.context, **fields}})

    def debug(self, message: str, **fields):
        self._emit(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields):
        self._emit(logging.INFO, message, **fields)

    def warning(self, message: str, **fields):
        self._emit(logging.WARNING, message, **fields)

    def error(self, message: str, **fields):
        self._emit(logging.ERROR, message, **fields)

    def exception(self, message: str, **fields):
        """Log at ERROR with the active exception's traceback."""
        self._emit(logging.ERROR, message, exc_info=True, **fields)


recurrence_logger = StructuredLogger(
    "recurring-task-engine", level=getattr(logging, LOG_LEVEL, logging.INFO)
)


def log_cron_job(job_name: str, status: str, **data):
    """Record a maintenance job lifecycle event (START, SUCCESS, ERROR, SKIPPED)."""
    level = logging.ERROR if status == "ERROR" else logging.INFO
    recurrence_logger._emit(level, f"CRON_JOB: {job_name} {status}", job=job_name, status=status, **data)


def log_performance(operation: str, duration_ms: float, **data):
    """Record how long an engine operation took."""
    recurrence_logger.info(
        f"PERFORMANCE: {operation}", operation=operation, duration_ms=round(duration_ms, 2), **data
    )
