# src/fleet/registry.py
"""
Registry of connected turtles, keyed by the name each one announced.

Observers are told about every registration and removal, synchronously and in
order. The ActiveSelector is the main observer: that is how a disconnect
clears the interactive selection and how the first turtle to connect gets
promoted into it.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Protocol

from .agent import Agent
from .connection import AgentConnection
from .errors import AgentNotFoundError

log = logging.getLogger(__name__)


class RegistryObserver(Protocol):
    def agent_registered(self, agent: Agent) -> None:
        ...

    def agent_removed(self, agent: Agent) -> None:
        ...


class AgentRegistry:
    """Name -> Agent mapping in registration order."""

    def __init__(self) -> None:
        self._agents: Dict[str, Agent] = {}
        self._observers: List[RegistryObserver] = []

    def add_observer(self, observer: RegistryObserver) -> None:
        self._observers.append(observer)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def register(self, name: str, connection: AgentConnection) -> Agent:
        """
        Create and store an Agent for a freshly handshaken connection.

        A name that is already taken is handed to the newcomer: the previous
        Agent is reported as removed and replaced. Nothing is merged.
        """
        displaced = self._agents.pop(name, None)
        if displaced is not None:
            log.warning("Turtle name %r reused; replacing the previous connection", name)
            self._notify_removed(displaced)

        agent = Agent(name=name, connection=connection)
        self._agents[name] = agent
        log.info("Registered turtle %s", name)
        for observer in list(self._observers):
            observer.agent_registered(agent)
        return agent

    def unregister(self, name: str, agent: Optional[Agent] = None) -> Optional[Agent]:
        """
        Remove the agent registered under `name`; no-op if absent.

        When `agent` is given the entry is only removed if it is that exact
        Agent, so the late close of a replaced connection leaves its
        successor alone. Returns the removed Agent, if any.
        """
        current = self._agents.get(name)
        if current is None or (agent is not None and current is not agent):
            return None
        del self._agents[name]
        log.info("Unregistered turtle %s", name)
        self._notify_removed(current)
        return current

    def _notify_removed(self, agent: Agent) -> None:
        for observer in list(self._observers):
            observer.agent_removed(agent)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find(self, name: str) -> Agent:
        try:
            return self._agents[name]
        except KeyError:
            raise AgentNotFoundError(name) from None

    def get(self, name: str) -> Optional[Agent]:
        return self._agents.get(name)

    def contains(self, agent: Agent) -> bool:
        """True if `agent` itself (not just its name) is registered."""
        return self._agents.get(agent.name) is agent

    def list_all(self) -> List[Agent]:
        """Snapshot of all agents in registration order."""
        return list(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)
