# gateway package
# src/gateway/__init__.py
"""
Websocket gateway that accepts turtle connections.

Exports:
    - create_app: FastAPI app with the turtle websocket route
    - create_server: uvicorn server bound to the configured host/port
    - serve_turtle: per-connection handshake and receive loop
"""

from __future__ import annotations

from .server import create_app, create_server, serve_turtle

__all__ = [
    "create_app",
    "create_server",
    "serve_turtle",
]
