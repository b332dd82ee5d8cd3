# src/fleet/correlator.py
"""
Request/reply correlation over a connection that has no request ids.

A reply is simply "the next message on that connection". That is only sound
while at most one request per agent is in flight and the device answers in
order. The correlator relies on that rule but does not enforce it: the
selector refuses busy agents, and TaskRunner awaits each reply before
sending the next step.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event

from .agent import Agent
from .errors import ConnectionClosedError, FleetError, NoActiveAgentError, TransportError

log = logging.getLogger(__name__)

_MODULE = "fleet.correlator"


class ReplyCorrelator:
    """Sends one payload and waits for the single reply that answers it."""

    def __init__(self, bus: Optional[EventBus] = None) -> None:
        self._bus = bus

    async def request(self, agent: Optional[Agent], payload: str) -> str:
        """
        Send `payload` to `agent` and return the next message it sends back.

        Raises:
            NoActiveAgentError: `agent` is None.
            TransportError: the connection reported an error first.
            ConnectionClosedError: the connection closed first (or already was).
        """
        if agent is None:
            raise NoActiveAgentError()

        connection = agent.connection
        if connection.closed:
            raise ConnectionClosedError(agent.name)

        loop = asyncio.get_running_loop()
        reply: asyncio.Future[str] = loop.create_future()

        def on_message(text: str) -> None:
            if not reply.done():
                reply.set_result(text)

        def on_error(exc: BaseException) -> None:
            if not reply.done():
                reply.set_exception(TransportError(agent.name, exc))

        def on_close() -> None:
            if not reply.done():
                reply.set_exception(ConnectionClosedError(agent.name))

        # Listen before sending: the reply may be delivered before send() returns.
        with connection.subscribe_once(on_message, on_error, on_close):
            sent = await connection.send(payload)
            if not sent and not reply.done():
                # Closed between the check above and the write.
                reply.set_exception(ConnectionClosedError(agent.name))
            log_event(
                bus=self._bus,
                module=_MODULE,
                event_type=EventType.REQUEST_SENT,
                message=f"Request sent to {agent.name}",
                payload={"agent": agent.name, "payload": payload},
                correlation_id=agent.name,
            )
            try:
                text = await reply
            except FleetError as exc:
                log_event(
                    bus=self._bus,
                    module=_MODULE,
                    event_type=EventType.REQUEST_FAILED,
                    message=f"Request to {agent.name} failed",
                    payload={"agent": agent.name, "error": exc.to_dict()},
                    correlation_id=agent.name,
                )
                raise

        log_event(
            bus=self._bus,
            module=_MODULE,
            event_type=EventType.REPLY_RECEIVED,
            message=f"Reply from {agent.name}",
            payload={"agent": agent.name, "reply": text},
            correlation_id=agent.name,
        )
        return text
