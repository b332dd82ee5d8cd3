# src/console/dispatcher.py
"""
CommandDispatcher: one operator line -> one action on the FleetSession.

Each command is one of three shapes:
- fire-and-forget send (`send`);
- send-and-await through the correlator (`exec`, `inventory`, primitives,
  `slot`), which holds the prompt until the turtle answers;
- a detached task (`repeat`, `search`), which returns the prompt at once and
  reports completion later through the monitoring bus.

Errors surface as FleetError subclasses; the console loop prints them and
moves on to the next line.
"""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from env.schema import TaskLimits
from fleet.agent import Agent
from fleet.errors import CommandError, NoActiveAgentError
from fleet.session import FleetSession
from fleet.tasks import repeat_task, search_task

from . import commands

log = logging.getLogger(__name__)

Handler = Callable[[List[str], str], Awaitable[bool]]

HELP_TEXT = """\
list                      show connected turtles
select <name>             make an idle turtle the active one
deselect                  clear the active turtle
exec <lua>                run Lua on the active turtle and print the reply
send <lua>                run Lua without waiting for a reply
inventory                 show the 16 inventory slots (* = selected)
slot <1-16>               select an inventory slot
<primitive>               one of: {primitives}
repeat <n> <primitive>    run a primitive n times in the background
search <n> <text>         dig forward up to n blocks, stop when a neighbouring block name contains <text>
tasks                     show background tasks
help                      this text
quit | exit               close all connections and leave"""


class CommandDispatcher:
    """Parses operator input and drives the session."""

    def __init__(
        self,
        session: FleetSession,
        console: Optional[Console] = None,
        limits: Optional[TaskLimits] = None,
    ) -> None:
        self._session = session
        self._console = console or Console()
        self._limits = limits or TaskLimits()
        self._handlers: Dict[str, Handler] = {
            "list": self._cmd_list,
            "select": self._cmd_select,
            "deselect": self._cmd_deselect,
            "exec": self._cmd_exec,
            "send": self._cmd_send,
            "inventory": self._cmd_inventory,
            "slot": self._cmd_slot,
            "repeat": self._cmd_repeat,
            "search": self._cmd_search,
            "tasks": self._cmd_tasks,
            "help": self._cmd_help,
            "quit": self._cmd_quit,
            "exit": self._cmd_quit,
        }

    async def dispatch(self, line: str) -> bool:
        """
        Execute one line. Returns False when the operator asked to quit.

        Raises FleetError subclasses for every expected failure.
        """
        line = line.strip()
        if not line:
            return True

        tokens = line.split()
        word = tokens[0].lower()
        handler = self._handlers.get(word)
        if handler is not None:
            return await handler(tokens, line)
        if commands.is_primitive(word):
            return await self._cmd_primitive(tokens, line)
        raise CommandError(f"no such command {tokens[0]}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_target(self, command: str) -> Agent:
        agent = self._session.current
        if agent is None:
            raise NoActiveAgentError(f"{command} requires an active turtle")
        return agent

    @staticmethod
    def _expect_args(tokens: List[str], count: int, usage: str) -> None:
        if len(tokens) - 1 != count:
            raise CommandError(usage)

    @staticmethod
    def _parse_count(raw: str, limit: int, what: str) -> int:
        try:
            value = int(raw)
        except ValueError:
            raise CommandError(f"{what} must be a number, got {raw}") from None
        if not 1 <= value <= limit:
            raise CommandError(f"{what} must be between 1 and {limit}")
        return value

    @staticmethod
    def _rest_of_line(command: str, line: str) -> str:
        match = re.match(rf"{command}\s+(.+)", line, flags=re.IGNORECASE | re.DOTALL)
        if match is None:
            raise CommandError(f"{command} expects a string - the code to execute")
        return match.group(1)

    def _print(self, text: str) -> None:
        self._console.print(escape(text))

    # ------------------------------------------------------------------
    # Session commands
    # ------------------------------------------------------------------

    async def _cmd_list(self, tokens: List[str], line: str) -> bool:
        self._expect_args(tokens, 0, "list expects no arguments")
        agents = self._session.list_agents()
        if not agents:
            self._print("no turtles connected")
            return True

        current = self._session.current
        table = Table(show_header=True, header_style="bold")
        table.add_column("", width=1)
        table.add_column("Turtle")
        table.add_column("Status")
        for agent in agents:
            table.add_row(
                "*" if agent is current else "",
                escape(agent.name),
                agent.status.name.lower(),
            )
        self._console.print(table)
        return True

    async def _cmd_select(self, tokens: List[str], line: str) -> bool:
        self._expect_args(tokens, 1, "select expects one argument - the name of the turtle to select")
        self._session.select_agent(tokens[1])
        return True

    async def _cmd_deselect(self, tokens: List[str], line: str) -> bool:
        self._expect_args(tokens, 0, "deselect expects no arguments")
        self._session.deselect()
        return True

    async def _cmd_tasks(self, tokens: List[str], line: str) -> bool:
        self._expect_args(tokens, 0, "tasks expects no arguments")
        running = self._session.running_tasks()
        if not running:
            self._print("no background tasks")
        for agent, task in running:
            self._print(f"{agent.name}: {task.kind} ({task.description})")
        return True

    async def _cmd_help(self, tokens: List[str], line: str) -> bool:
        self._print(HELP_TEXT.format(primitives=", ".join(sorted(commands.PRIMITIVES))))
        return True

    async def _cmd_quit(self, tokens: List[str], line: str) -> bool:
        return False

    # ------------------------------------------------------------------
    # Turtle commands
    # ------------------------------------------------------------------

    async def _cmd_exec(self, tokens: List[str], line: str) -> bool:
        if len(tokens) < 2:
            raise CommandError("exec expects a string - the code to execute")
        agent = self._require_target("exec")
        code = self._rest_of_line("exec", line)
        self._print(await self._session.send_and_await(agent, code))
        return True

    async def _cmd_send(self, tokens: List[str], line: str) -> bool:
        if len(tokens) < 2:
            raise CommandError("send expects a string - the code to execute")
        agent = self._require_target("send")
        code = self._rest_of_line("send", line)
        if not await self._session.send_direct(agent, code):
            self._print(f"could not send to {agent.name}")
        return True

    async def _cmd_inventory(self, tokens: List[str], line: str) -> bool:
        self._expect_args(tokens, 0, "inventory expects no arguments")
        agent = self._require_target("inventory")

        reply = await self._session.send_and_await(agent, commands.selected_slot())
        try:
            selected: Optional[int] = int(reply.strip())
        except ValueError:
            log.debug("Unexpected selected-slot reply from %s: %r", agent.name, reply)
            selected = None

        for idx in range(1, commands.INVENTORY_SLOTS + 1):
            detail = await self._session.send_and_await(agent, commands.item_detail(idx))
            marker = "*" if selected == idx else " "
            self._print(f"{marker} {detail}")
        return True

    async def _cmd_slot(self, tokens: List[str], line: str) -> bool:
        self._expect_args(tokens, 1, "slot expects one argument - the slot number")
        slot = self._parse_count(tokens[1], commands.INVENTORY_SLOTS, "slot")
        agent = self._require_target("slot")
        self._print(await self._session.send_and_await(agent, commands.select_slot(slot)))
        return True

    async def _cmd_primitive(self, tokens: List[str], line: str) -> bool:
        word = tokens[0].lower()
        self._expect_args(tokens, 0, f"{word} expects no arguments")
        agent = self._require_target(word)
        self._print(await self._session.send_and_await(agent, commands.primitive(word)))
        return True

    async def _cmd_repeat(self, tokens: List[str], line: str) -> bool:
        self._expect_args(tokens, 2, "repeat expects two arguments - a count and a command")
        count = self._parse_count(tokens[1], self._limits.max_repeat, "repeat count")
        word = tokens[2].lower()
        if not commands.is_primitive(word):
            raise CommandError(f"repeat cannot run {tokens[2]}")
        agent = self._require_target("repeat")
        task = repeat_task(count, commands.primitive(word), label=word)
        self._session.start_task(agent, task)
        self._print(f"{agent.name} started {task.description}")
        return True

    async def _cmd_search(self, tokens: List[str], line: str) -> bool:
        self._expect_args(tokens, 2, "search expects two arguments - a step count and the text to look for")
        count = self._parse_count(tokens[1], self._limits.max_search_steps, "search steps")
        agent = self._require_target("search")
        task = search_task(count, tokens[2], commands.SEARCH_ADVANCE, commands.SEARCH_PROBES)
        self._session.start_task(agent, task)
        self._print(f"{agent.name} started {task.description}")
        return True
