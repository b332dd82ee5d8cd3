# console package
# src/console/__init__.py
"""
Operator console for the turtle fleet.

Exports:
    - CommandDispatcher: parses one line and drives the FleetSession
    - ConsoleLoop: prompt/read/dispatch loop with live notices
"""

from __future__ import annotations

from .dispatcher import CommandDispatcher
from .loop import ConsoleLoop

__all__ = [
    "CommandDispatcher",
    "ConsoleLoop",
]
