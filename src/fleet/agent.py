# src/fleet/agent.py

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum, auto

from .connection import AgentConnection


class AgentStatus(Enum):
    """
    Availability of a turtle for interactive use.

    BUSY holds exactly while a TaskRunner run is in progress against the
    agent; at every other moment it is IDLE.
    """

    IDLE = auto()
    BUSY = auto()


@dataclass(eq=False)
class Agent:
    """
    One connected turtle.

    Agents compare by identity: a device that reconnects under a reused
    name is a different Agent from the one it replaced.
    """

    name: str
    connection: AgentConnection
    status: AgentStatus = AgentStatus.IDLE
    connected_at: float = field(default_factory=time.time)

    @property
    def is_idle(self) -> bool:
        return self.status is AgentStatus.IDLE

    @property
    def is_busy(self) -> bool:
        return self.status is AgentStatus.BUSY
