# src/fleet/selector.py
"""
The interactive seat: which single turtle, if any, unqualified console
commands are aimed at.

Rules:
- only an IDLE, registered agent can be selected;
- the selection is revoked when its agent is removed or becomes BUSY;
- when the seat is empty, the next agent that becomes idle (including a
  freshly connected one) is promoted into it.
"""

from __future__ import annotations

import logging
from typing import Optional

from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event

from .agent import Agent
from .errors import AgentBusyError
from .registry import AgentRegistry

log = logging.getLogger(__name__)

_MODULE = "fleet.selector"


class ActiveSelector:
    """Tracks the current interactive target and keeps it consistent with agent status."""

    def __init__(self, registry: AgentRegistry, bus: Optional[EventBus] = None) -> None:
        self._registry = registry
        self._bus = bus
        self._current: Optional[Agent] = None
        registry.add_observer(self)

    @property
    def current(self) -> Optional[Agent]:
        return self._current

    def select(self, name: str) -> Agent:
        """
        Make the named agent current.

        Raises AgentNotFoundError / AgentBusyError; in both cases the current
        selection is left untouched.
        """
        agent = self._registry.find(name)
        if agent.is_busy:
            raise AgentBusyError(name)
        self._set(agent, reason="select")
        return agent

    def clear(self) -> None:
        self._set(None, reason="deselect")

    # ------------------------------------------------------------------
    # Status hooks
    # ------------------------------------------------------------------

    def notify_removed(self, agent: Agent) -> None:
        if self._current is agent:
            self._set(None, reason="removed")

    def notify_became_busy(self, agent: Agent) -> None:
        if self._current is agent:
            self._set(None, reason="busy")

    def notify_became_idle(self, agent: Agent) -> None:
        # A disconnected agent finishing its task must not take the seat.
        if self._current is None and self._registry.contains(agent) and agent.is_idle:
            self._set(agent, reason="idle")

    # RegistryObserver

    def agent_registered(self, agent: Agent) -> None:
        self.notify_became_idle(agent)

    def agent_removed(self, agent: Agent) -> None:
        self.notify_removed(agent)

    # ------------------------------------------------------------------

    def _set(self, agent: Optional[Agent], reason: str) -> None:
        if agent is self._current:
            return
        previous = self._current
        self._current = agent
        if agent is not None:
            log.debug("Selected %s (%s)", agent.name, reason)
            log_event(
                bus=self._bus,
                module=_MODULE,
                event_type=EventType.AGENT_SELECTED,
                message=f"Turtle {agent.name} selected",
                payload={"agent": agent.name, "reason": reason},
                correlation_id=agent.name,
            )
        else:
            name = previous.name if previous is not None else None
            log.debug("Selection cleared (%s)", reason)
            log_event(
                bus=self._bus,
                module=_MODULE,
                event_type=EventType.SELECTION_CLEARED,
                message="Selection cleared",
                payload={"agent": name, "reason": reason},
                correlation_id=name,
            )
