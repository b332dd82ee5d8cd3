# tests/test_gateway_server.py
"""
Tests for the websocket gateway.

serve_turtle is driven with an in-memory websocket so the handshake,
the receive loop and the disconnect path run on the test's event loop.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Union

import pytest
from fastapi import WebSocketDisconnect

from env.schema import ServerConfig
from fleet.errors import TransportError
from fleet.session import FleetSession
from fleet.testing.fakes import settle
from gateway.server import create_app, create_server, serve_turtle


class QueueWebSocket:
    """Just enough of starlette's WebSocket for serve_turtle."""

    def __init__(self) -> None:
        self.inbound: "asyncio.Queue[Union[str, BaseException]]" = asyncio.Queue()
        self.accepted = False
        self.sent: List[str] = []
        self.close_code: Optional[int] = None

    async def accept(self) -> None:
        self.accepted = True

    async def receive_text(self) -> str:
        item = await self.inbound.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send_text(self, data: str) -> None:
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.close_code = code

    def push(self, item: Union[str, BaseException]) -> None:
        self.inbound.put_nowait(item)


@pytest.mark.asyncio
async def test_handshake_registers_and_frames_become_replies(session: FleetSession):
    ws = QueueWebSocket()
    serving = asyncio.create_task(serve_turtle(session, ws))

    ws.push("alpha\n")
    await settle()
    assert ws.accepted
    agent = session.registry.find("alpha")
    assert session.current is agent

    pending = asyncio.create_task(session.send_and_await(agent, "return 1"))
    await settle()
    assert ws.sent == ["return 1"]

    ws.push("1")
    assert await pending == "1"

    ws.push(WebSocketDisconnect(code=1001))
    await serving
    assert session.registry.get("alpha") is None
    assert session.current is None


@pytest.mark.asyncio
async def test_receive_error_fails_pending_request(session: FleetSession):
    ws = QueueWebSocket()
    serving = asyncio.create_task(serve_turtle(session, ws))
    ws.push("alpha")
    await settle()
    agent = session.registry.find("alpha")

    pending = asyncio.create_task(session.send_and_await(agent, "return 1"))
    await settle()
    ws.push(RuntimeError("socket torn"))
    await serving

    with pytest.raises(TransportError):
        await pending
    assert len(session.registry) == 0


@pytest.mark.asyncio
async def test_empty_name_is_rejected(session: FleetSession):
    ws = QueueWebSocket()
    ws.push("   ")

    await serve_turtle(session, ws)

    assert ws.close_code == 1008
    assert len(session.registry) == 0


@pytest.mark.asyncio
async def test_binary_handshake_is_rejected(session: FleetSession, caplog):
    ws = QueueWebSocket()
    # What starlette raises when the first frame carries bytes, not text.
    ws.push(KeyError("text"))

    await serve_turtle(session, ws)

    assert ws.close_code == 1008
    assert len(session.registry) == 0
    assert "unreadable handshake" in caplog.text


@pytest.mark.asyncio
async def test_disconnect_before_handshake(session: FleetSession):
    ws = QueueWebSocket()
    ws.push(WebSocketDisconnect(code=1000))

    await serve_turtle(session, ws)

    assert len(session.registry) == 0
    assert ws.close_code is None


def test_create_app_mounts_route_at_configured_path(session: FleetSession):
    app = create_app(session, path="/turtles")

    assert "/turtles" in [route.path for route in app.routes]


def test_create_server_uses_config(session: FleetSession):
    server = create_server(session, ServerConfig(host="127.0.0.1", port=9001, path="/"))

    assert server.config.host == "127.0.0.1"
    assert server.config.port == 9001
    assert server.should_exit is False
