# src/console/commands.py
"""
Operator words -> Lua payloads.

Pure string formatting: the turtle runs each payload as a Lua chunk and
sends back whatever it returns as text. Nothing here holds state.
"""

from __future__ import annotations

from typing import Dict, Tuple

INVENTORY_SLOTS = 16

# Single-call primitives, usable directly or inside `repeat`.
PRIMITIVES: Dict[str, str] = {
    "forward": "return turtle.forward()",
    "back": "return turtle.back()",
    "up": "return turtle.up()",
    "down": "return turtle.down()",
    "left": "return turtle.turnLeft()",
    "right": "return turtle.turnRight()",
    "dig": "return turtle.dig()",
    "digup": "return turtle.digUp()",
    "digdown": "return turtle.digDown()",
    "place": "return turtle.place()",
    "placeup": "return turtle.placeUp()",
    "placedown": "return turtle.placeDown()",
    "refuel": "return turtle.refuel()",
    "fuel": "return turtle.getFuelLevel()",
}

# Search task: one advance, then a look at four faces.
# The advance replies "" so only block names can match the needle.
SEARCH_ADVANCE = 'turtle.dig() turtle.forward() return ""'

SEARCH_PROBES: Tuple[str, ...] = (
    'local ok, d = turtle.inspectUp() return ok and d.name or ""',
    'local ok, d = turtle.inspectDown() return ok and d.name or ""',
    'turtle.turnLeft() local ok, d = turtle.inspect() turtle.turnRight() return ok and d.name or ""',
    'turtle.turnRight() local ok, d = turtle.inspect() turtle.turnLeft() return ok and d.name or ""',
)


def primitive(word: str) -> str:
    """Payload for a primitive; KeyError if `word` is not one."""
    return PRIMITIVES[word.lower()]


def is_primitive(word: str) -> bool:
    return word.lower() in PRIMITIVES


def select_slot(slot: int) -> str:
    if not 1 <= slot <= INVENTORY_SLOTS:
        raise ValueError(f"slot must be between 1 and {INVENTORY_SLOTS}")
    return f"return turtle.select({slot})"


def selected_slot() -> str:
    return "return turtle.getSelectedSlot()"


def item_detail(slot: int) -> str:
    return f"return turtle.getItemDetail({slot})"
