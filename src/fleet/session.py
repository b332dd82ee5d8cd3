# src/fleet/session.py
"""
FleetSession: the one context object that owns all fleet state.

It is created by the entrypoint, handed to the websocket gateway (which
feeds connections in and out) and to the console dispatcher (which issues
commands). Nothing in the fleet package keeps module-level state, so tests
build a fresh session per case.

Console surface:
    list_agents()                       -> list[Agent]
    select_agent(name)                  -> Agent
    current_agent_name()                -> str | None
    send_direct(agent, payload)         -> bool
    send_and_await(agent, payload)      -> str
    start_task(agent, task_spec)        -> asyncio.Task[TaskResult]
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Set, Tuple

from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event

from .agent import Agent
from .connection import AgentConnection, Transport
from .correlator import ReplyCorrelator
from .errors import NoActiveAgentError
from .registry import AgentRegistry
from .selector import ActiveSelector
from .tasks import TaskResult, TaskRunner, TaskSpec

log = logging.getLogger(__name__)

_MODULE = "fleet.session"


class FleetSession:
    """Registry, selection, correlation and task running for one console process."""

    def __init__(self, bus: Optional[EventBus] = None) -> None:
        self.bus = bus if bus is not None else EventBus()
        self.registry = AgentRegistry()
        self.selector = ActiveSelector(self.registry, bus=self.bus)
        self.correlator = ReplyCorrelator(bus=self.bus)
        self.tasks = TaskRunner(self.correlator, self.selector, bus=self.bus)
        self._closing: Set["asyncio.Task[None]"] = set()

    # ------------------------------------------------------------------
    # Connection lifecycle (driven by the gateway)
    # ------------------------------------------------------------------

    def connect(self, name: str, transport: Transport) -> Agent:
        """
        Register a turtle whose handshake announced `name`.

        If the name was already taken, the older connection is closed in the
        background; close_all() waits for those closes as well.
        """
        displaced = self.registry.get(name)
        connection = AgentConnection(transport, label=name)
        agent = self.registry.register(name, connection)
        if displaced is not None:
            self._close_displaced(displaced)
        log_event(
            bus=self.bus,
            module=_MODULE,
            event_type=EventType.AGENT_CONNECTED,
            message=f"Turtle {name} connected",
            payload={"agent": name},
            correlation_id=name,
        )
        return agent

    def _close_displaced(self, agent: Agent) -> None:
        handle = asyncio.get_running_loop().create_task(
            agent.connection.close(),
            name=f"close-displaced-{agent.name}",
        )
        self._closing.add(handle)
        handle.add_done_callback(self._closing.discard)

    def disconnect(self, agent: Agent, error: Optional[BaseException] = None) -> None:
        """
        Forget a turtle whose connection ended.

        The registry entry goes first, then the connection events are fired,
        all without yielding: a task waiting on this agent wakes up to find
        it already unregistered and does not reclaim the interactive seat.
        """
        removed = self.registry.unregister(agent.name, agent=agent)
        if error is not None:
            agent.connection.deliver_error(error)
        agent.connection.deliver_close()
        if removed is not None:
            log_event(
                bus=self.bus,
                module=_MODULE,
                event_type=EventType.AGENT_DISCONNECTED,
                message=f"Turtle {agent.name} disconnected",
                payload={"agent": agent.name, "error": repr(error) if error else None},
                correlation_id=agent.name,
            )

    async def close_all(self) -> None:
        """Close every connection and stop running tasks (console shutdown)."""
        await self.tasks.shutdown()
        if self._closing:
            await asyncio.gather(*list(self._closing), return_exceptions=True)
        for agent in self.registry.list_all():
            await agent.connection.close()
            self.disconnect(agent)

    # ------------------------------------------------------------------
    # Console surface
    # ------------------------------------------------------------------

    def list_agents(self) -> List[Agent]:
        return self.registry.list_all()

    def select_agent(self, name: str) -> Agent:
        return self.selector.select(name)

    def deselect(self) -> None:
        self.selector.clear()

    @property
    def current(self) -> Optional[Agent]:
        return self.selector.current

    def current_agent_name(self) -> Optional[str]:
        agent = self.selector.current
        return agent.name if agent is not None else None

    async def send_direct(self, agent: Optional[Agent], payload: str) -> bool:
        """Fire and forget; the reply, if any, is dropped."""
        if agent is None:
            raise NoActiveAgentError()
        return await agent.connection.send(payload)

    async def send_and_await(self, agent: Optional[Agent], payload: str) -> str:
        return await self.correlator.request(agent, payload)

    def start_task(self, agent: Optional[Agent], task: TaskSpec) -> "asyncio.Task[TaskResult]":
        if agent is None:
            raise NoActiveAgentError()
        return self.tasks.start(agent, task)

    def running_tasks(self) -> List[Tuple[Agent, TaskSpec]]:
        return self.tasks.running()
