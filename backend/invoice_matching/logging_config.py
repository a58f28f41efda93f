"""
Invoice Matching - Structured JSON Logging

The engine itself only logs through module loggers. Hosts that embed it
call setup_logging() once to get one JSON object per line, with the
current reconciliation run stamped on every record.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else arrived through `extra`
_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "run_id"}

PLAIN_FORMAT = "%(asctime)s [%(run_id)s] %(name)s %(levelname)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """
    One JSON object per log line, for log aggregation (Datadog, CloudWatch, etc.)
    """

    def __init__(self, service_name: str = "invoice-matching"):
        super().__init__()
        self.service_name = service_name
        self.environment = os.environ.get("ENVIRONMENT", "development")

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
            "run_id": getattr(record, "run_id", None),
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        if record.exc_info and record.exc_info[0]:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }

        extra = {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


class ReconciliationContextFilter(logging.Filter):
    """
    Stamps the active reconciliation run onto log records.
    """

    def __init__(self):
        super().__init__()
        self.run_id: Optional[str] = None

    def set_run_context(self, run_id: Optional[str] = None):
        self.run_id = run_id

    def clear_run_context(self):
        self.run_id = None

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "run_id"):
            record.run_id = self.run_id
        return True


# Installed by setup_logging(); None until then
_run_context_filter: Optional[ReconciliationContextFilter] = None


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    service_name: str = "invoice-matching"
) -> logging.Logger:
    """
    Route all logging to stdout through a single handler.

    Args:
        level: DEBUG, INFO, WARNING or ERROR (unknown names fall back to INFO)
        json_format: JSON lines when True, plain text otherwise
        service_name: Stamped on every JSON line

    Returns:
        The root logger
    """
    global _run_context_filter

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    _run_context_filter = ReconciliationContextFilter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.addFilter(_run_context_filter)
    handler.setFormatter(
        JSONFormatter(service_name=service_name) if json_format else logging.Formatter(PLAIN_FORMAT)
    )
    root.addHandler(handler)

    return root


def setup_logging_from_settings(settings) -> logging.Logger:
    """Configure logging from a MatchingSettings instance."""
    return setup_logging(
        level=settings.LOG_LEVEL,
        json_format=settings.LOG_JSON,
        service_name=settings.SERVICE_NAME
    )


def set_run_context(run_id: Optional[str] = None):
    """Stamp run_id onto subsequent log records (no-op before setup_logging)."""
    if _run_context_filter:
        _run_context_filter.set_run_context(run_id)


def clear_run_context():
    if _run_context_filter:
        _run_context_filter.clear_run_context()
