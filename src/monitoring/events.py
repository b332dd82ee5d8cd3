# path: src/monitoring/events.py
"""
Event schema for fleet monitoring.

This module defines:
- EventType enum
- MonitoringEvent (structured system events)

All events are JSON-serializable via `.to_dict()` and are intended
for use with monitoring.bus.EventBus and monitoring.logger.JsonFileLogger.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum, auto
from typing import Any, Dict, Optional


# ============================================================
# Event Types
# ============================================================

class EventType(Enum):
    """Typed monitoring events emitted by the fleet, gateway and console."""

    # Connection lifecycle (gateway)
    AGENT_CONNECTED = auto()
    AGENT_DISCONNECTED = auto()

    # Interactive seat
    AGENT_SELECTED = auto()
    SELECTION_CLEARED = auto()

    # Correlated request/reply traffic
    REQUEST_SENT = auto()
    REPLY_RECEIVED = auto()
    REQUEST_FAILED = auto()

    # Background task lifecycle
    TASK_STARTED = auto()
    TASK_FINISHED = auto()

    # Generic log messages
    LOG = auto()


# ============================================================
# Monitoring Event Structure
# ============================================================

@dataclass
class MonitoringEvent:
    """
    Runtime event emitted by any part of the console.

    All fields must be JSON-safe.
    """

    ts: float                   # UNIX timestamp (seconds)
    module: str                 # Source module string ("fleet.tasks", "gateway", etc.)
    event_type: EventType       # Enum describing the event class
    message: str                # Short human-readable description
    payload: Dict[str, Any]     # Structured data (agent name, task result, ...)
    correlation_id: Optional[str] = None  # Groups events per agent or task run

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict for loggers."""
        data = asdict(self)
        data["event_type"] = self.event_type.name  # store name, not enum
        return data
