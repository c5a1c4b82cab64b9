"""Observability events and the default logging sink."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

logger = logging.getLogger("courier.observability")

Severity = Literal["info", "warning", "error"]

_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class ObservabilityEvent:
    """
    Structured event for the external observability collaborator.

    kind is one of: inference_failure, step_failure, tool_failure, bounce,
    bounce_dropped, message_dropped.
    """

    kind: str
    severity: Severity
    agent_id: str | None = None
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class LoggingObservabilitySink:
    """Default sink: writes events to the courier.observability logger."""

    def emit(self, event: ObservabilityEvent) -> None:
        logger.log(
            _LEVELS.get(event.severity, logging.INFO),
            f"[{event.kind}] agent={event.agent_id} {event.message}",
            extra={"courier_event": event.kind, "courier_details": event.details},
        )
