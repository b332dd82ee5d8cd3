# src/fleet/connection.py
"""
Connection abstraction for a single turtle.

Defines:
- Transport: the minimal async text channel the connection needs. A FastAPI
  `WebSocket` satisfies it as-is; tests use fleet.testing.fakes.FakeTransport.
- AgentConnection: wraps one transport and exposes one-shot notification
  points for the next message, an error and the close.
- ReplySubscription: a scoped set of those three listeners. Whichever fires
  first disposes the whole set, so its siblings can never fire afterwards.

Inbound traffic is pushed in by whoever owns the receive loop (the gateway)
through deliver_message / deliver_error / deliver_close. Nothing is buffered:
a message that arrives while no one is listening is dropped, which matches
the turtle protocol (one reply per request, no unsolicited pushes).
"""

from __future__ import annotations

import logging
from typing import Callable, List, Protocol

log = logging.getLogger(__name__)

MessageListener = Callable[[str], None]
ErrorListener = Callable[[BaseException], None]
CloseListener = Callable[[], None]


class Transport(Protocol):
    """Async, message-oriented text channel to one remote device."""

    async def send_text(self, data: str) -> None:
        """Transmit one text frame."""
        ...

    async def close(self, code: int = 1000) -> None:
        """Close the channel."""
        ...


class ReplySubscription:
    """
    One-shot listeners for (next message, error, close) on one connection.

    Use as a context manager so the listeners are released even when the
    awaiting coroutine is cancelled:

        with connection.subscribe_once(on_message, on_error, on_close):
            ...
    """

    def __init__(
        self,
        connection: "AgentConnection",
        on_message: MessageListener,
        on_error: ErrorListener,
        on_close: CloseListener,
    ) -> None:
        self._connection = connection
        self._on_message = on_message
        self._on_error = on_error
        self._on_close = on_close
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def dispose(self) -> None:
        """Unregister all three listeners. Idempotent."""
        if not self._active:
            return
        self._active = False
        self._connection._discard(self)

    # Entry points called by AgentConnection; first one wins.

    def _fire_message(self, text: str) -> None:
        if self._active:
            self.dispose()
            self._on_message(text)

    def _fire_error(self, exc: BaseException) -> None:
        if self._active:
            self.dispose()
            self._on_error(exc)

    def _fire_close(self) -> None:
        if self._active:
            self.dispose()
            self._on_close()

    def __enter__(self) -> "ReplySubscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.dispose()


class AgentConnection:
    """Persistent, message-oriented channel to a single turtle."""

    def __init__(self, transport: Transport, label: str = "?") -> None:
        self._transport = transport
        # Name used in log lines; set to the agent name after the handshake.
        self.label = label
        self._message_listeners: List[MessageListener] = []
        self._error_listeners: List[ErrorListener] = []
        self._close_listeners: List[CloseListener] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def listener_count(self) -> int:
        """Registered one-shot listeners across all three notification points."""
        return (
            len(self._message_listeners)
            + len(self._error_listeners)
            + len(self._close_listeners)
        )

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(self, payload: str) -> bool:
        """
        Transmit one opaque text payload.

        Returns False (and logs) instead of raising when the channel is
        already closed or the write fails; a write failure is also delivered
        as an error event so a pending reply wait is released.
        """
        if self._closed:
            log.warning("Dropping payload for %s: connection closed", self.label)
            return False
        try:
            await self._transport.send_text(payload)
        except Exception as exc:
            log.warning("Send to %s failed: %r", self.label, exc)
            self.deliver_error(exc)
            return False
        log.debug("-> %s: %s", self.label, payload)
        return True

    async def close(self) -> None:
        """Close the transport (idempotent) and fire the close notification."""
        if self._closed:
            return
        try:
            await self._transport.close()
        except Exception as exc:
            # The peer may already be gone; the close still counts locally.
            log.debug("Closing transport for %s raised %r", self.label, exc)
        self.deliver_close()

    # ------------------------------------------------------------------
    # One-shot notification points
    # ------------------------------------------------------------------

    def on_next_message(self, fn: MessageListener) -> None:
        self._message_listeners.append(fn)

    def on_error(self, fn: ErrorListener) -> None:
        self._error_listeners.append(fn)

    def on_close(self, fn: CloseListener) -> None:
        self._close_listeners.append(fn)

    def subscribe_once(
        self,
        on_message: MessageListener,
        on_error: ErrorListener,
        on_close: CloseListener,
    ) -> ReplySubscription:
        """Register the three listeners as one scoped subscription."""
        sub = ReplySubscription(self, on_message, on_error, on_close)
        self.on_next_message(sub._fire_message)
        self.on_error(sub._fire_error)
        self.on_close(sub._fire_close)
        return sub

    def _discard(self, sub: ReplySubscription) -> None:
        for listeners, fn in (
            (self._message_listeners, sub._fire_message),
            (self._error_listeners, sub._fire_error),
            (self._close_listeners, sub._fire_close),
        ):
            if fn in listeners:
                listeners.remove(fn)

    # ------------------------------------------------------------------
    # Inbound (fed by the receive loop)
    # ------------------------------------------------------------------

    def deliver_message(self, text: str) -> None:
        if self._closed:
            return
        listeners, self._message_listeners = self._message_listeners, []
        if not listeners:
            log.debug("Dropping unsolicited message from %s: %r", self.label, text)
            return
        log.debug("<- %s: %s", self.label, text)
        for fn in listeners:
            fn(text)

    def deliver_error(self, exc: BaseException) -> None:
        if self._closed:
            return
        listeners, self._error_listeners = self._error_listeners, []
        for fn in listeners:
            fn(exc)

    def deliver_close(self) -> None:
        if self._closed:
            return
        self._closed = True
        listeners, self._close_listeners = self._close_listeners, []
        self._message_listeners = []
        self._error_listeners = []
        for fn in listeners:
            fn()
