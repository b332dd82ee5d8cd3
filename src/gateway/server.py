# src/gateway/server.py
"""
Websocket gateway: where turtles connect.

A turtle opens ws://<host>:<port><path>, sends its name as the first text
frame, and from then on sends exactly one text frame per request it
receives. This module owns the receive loop for each socket and forwards
everything into the FleetSession:

    handshake frame     -> session.connect(name, websocket)
    every later frame   -> agent.connection.deliver_message(text)
    disconnect / error  -> session.disconnect(agent, error)
"""

from __future__ import annotations

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from env.schema import ServerConfig
from fleet.session import FleetSession

log = logging.getLogger(__name__)

# Policy violation: nothing usable arrived as the handshake.
_CLOSE_BAD_HANDSHAKE = 1008


def create_app(session: FleetSession, path: str = "/") -> FastAPI:
    """FastAPI application with the turtle websocket route mounted at `path`."""
    app = FastAPI(title="Turtle Fleet Gateway")

    @app.websocket(path)
    async def turtle_socket(websocket: WebSocket) -> None:
        await serve_turtle(session, websocket)

    return app


async def serve_turtle(session: FleetSession, websocket: WebSocket) -> None:
    """Handshake, then pump frames until the socket goes away."""
    await websocket.accept()

    try:
        name = (await websocket.receive_text()).strip()
    except WebSocketDisconnect:
        log.info("Connection closed before handshake")
        return
    except Exception as exc:
        # e.g. a binary first frame: starlette raises KeyError('text').
        log.warning("Rejecting connection with an unreadable handshake: %r", exc)
        await _reject(websocket)
        return
    if not name:
        log.warning("Rejecting connection with an empty name")
        await _reject(websocket)
        return

    agent = session.connect(name, websocket)
    error: Optional[BaseException] = None
    try:
        while True:
            text = await websocket.receive_text()
            agent.connection.deliver_message(text)
    except WebSocketDisconnect as exc:
        log.debug("Turtle %s disconnected (code=%s)", name, exc.code)
    except Exception as exc:
        log.warning("Receive loop for %s failed: %r", name, exc)
        error = exc
    finally:
        session.disconnect(agent, error=error)


async def _reject(websocket: WebSocket) -> None:
    try:
        await websocket.close(code=_CLOSE_BAD_HANDSHAKE)
    except Exception as exc:
        log.debug("Closing rejected socket raised %r", exc)


def create_server(session: FleetSession, config: ServerConfig) -> uvicorn.Server:
    """
    Build (but do not start) a uvicorn server for the gateway.

    Run it with `await server.serve()` on the console's event loop, and stop
    it by setting `server.should_exit = True`.
    """
    app = create_app(session, path=config.path)
    uv_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_config=None,  # keep the process-wide logging configuration
        ws="auto",
        lifespan="off",
    )
    return uvicorn.Server(uv_config)
