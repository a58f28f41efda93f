"""
Reconciliation Telemetry

The engine holds no module-level telemetry state. Callers pass a
MatchingTelemetry implementation to the engine; the default one writes
events to the standard logger.
"""

import logging
from typing import Any, Dict, List, Protocol, Tuple

logger = logging.getLogger(__name__)


class ReconciliationEvent:
    """Event types emitted during a matching run."""
    RUN_STARTED = "reconciliation.run_started"
    RUN_COMPLETED = "reconciliation.run_completed"
    RECORD_DROPPED = "reconciliation.record_dropped"


class MatchingTelemetry(Protocol):
    """Collaborator that receives engine events."""

    def record_event(self, event_type: str, details: Dict[str, Any]) -> None:
        ...


class LoggingTelemetry:
    """Writes events to the log with the details attached as extra fields."""

    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def record_event(self, event_type: str, details: Dict[str, Any]) -> None:
        self.log.info(
            f"Reconciliation event: {event_type}",
            extra={"event": event_type, "details": details}
        )


class NullTelemetry:
    """Discards all events."""

    def record_event(self, event_type: str, details: Dict[str, Any]) -> None:
        return None


class RecordingTelemetry:
    """Keeps events in memory, in emission order."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def record_event(self, event_type: str, details: Dict[str, Any]) -> None:
        self.events.append((event_type, details))

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [details for name, details in self.events if name == event_type]
