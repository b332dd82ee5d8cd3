# fleet package
# src/fleet/__init__.py
"""
Session layer for a fleet of websocket-connected turtles.

Exports:
    - FleetSession: context object wiring registry, selection, correlation
      and background tasks
    - Agent / AgentStatus
    - TaskSpec / TaskResult and the repeat/search task builders
    - the FleetError hierarchy
"""

from __future__ import annotations

from .agent import Agent, AgentStatus
from .connection import AgentConnection, ReplySubscription, Transport
from .correlator import ReplyCorrelator
from .errors import (
    AgentBusyError,
    AgentNotFoundError,
    CommandError,
    ConnectionClosedError,
    FleetError,
    NoActiveAgentError,
    TransportError,
)
from .registry import AgentRegistry
from .selector import ActiveSelector
from .session import FleetSession
from .tasks import TaskResult, TaskRunner, TaskSpec, repeat_task, search_task

__all__ = [
    "ActiveSelector",
    "Agent",
    "AgentBusyError",
    "AgentConnection",
    "AgentNotFoundError",
    "AgentRegistry",
    "AgentStatus",
    "CommandError",
    "ConnectionClosedError",
    "FleetError",
    "FleetSession",
    "NoActiveAgentError",
    "ReplyCorrelator",
    "ReplySubscription",
    "TaskResult",
    "TaskRunner",
    "TaskSpec",
    "Transport",
    "TransportError",
    "repeat_task",
    "search_task",
]
