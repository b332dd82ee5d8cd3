# src/app/__init__.py
"""
Application entrypoint for the turtle console.

Exposes:
- run_console: serve turtles and run the console on the current event loop
- main: CLI entry (`python -m app` / `turtle-console`)
"""

from __future__ import annotations

from .runtime import main, run_console

__all__ = [
    "main",
    "run_console",
]
