# src/console/loop.py
"""
Interactive input loop.

Reads one line at a time and hands it to the CommandDispatcher; the next
prompt only appears once the command has finished or detached into a
background task. Reading stdin blocks, so each read runs in a daemon
thread and hands the line back to the event loop, which keeps serving
turtles meanwhile.

The loop also subscribes to the monitoring bus and prints connect,
disconnect and task-completion notices as they happen.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Awaitable, Callable, Optional

from rich.console import Console
from rich.markup import escape

from fleet.errors import FleetError
from fleet.session import FleetSession
from monitoring.events import EventType, MonitoringEvent

from .dispatcher import CommandDispatcher

log = logging.getLogger(__name__)

LineReader = Callable[[str], Awaitable[str]]


class ConsoleLoop:
    """Prompt -> dispatch -> report, until quit or end of input."""

    def __init__(
        self,
        session: FleetSession,
        dispatcher: CommandDispatcher,
        console: Optional[Console] = None,
        prompt_suffix: str = "> ",
        read_line: Optional[LineReader] = None,
    ) -> None:
        self._session = session
        self._dispatcher = dispatcher
        self._console = console or Console()
        self._prompt_suffix = prompt_suffix
        self._read_line = read_line or self._read_stdin
        session.bus.subscribe(self._on_event)

    def prompt(self) -> str:
        name = self._session.current_agent_name()
        return f"{name}{self._prompt_suffix}" if name is not None else self._prompt_suffix

    async def run(self) -> None:
        """Run until `quit`/`exit` or end of input."""
        try:
            while True:
                try:
                    line = await self._read_line(self.prompt())
                except EOFError:
                    break

                line = line.strip()
                if not line:
                    continue

                try:
                    keep_going = await self._dispatcher.dispatch(line)
                except FleetError as exc:
                    self._console.print(f"[red]{escape(str(exc))}[/red]")
                    continue
                if not keep_going:
                    break
        finally:
            self._session.bus.unsubscribe(self._on_event)

    async def _read_stdin(self, prompt: str) -> str:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[str] = loop.create_future()

        def _deliver(line: Optional[str], exc: Optional[BaseException]) -> None:
            if future.done():
                return
            if exc is not None:
                future.set_exception(exc)
            else:
                future.set_result(line or "")

        def _worker() -> None:
            try:
                line = self._console.input(escape(prompt))
            except (EOFError, KeyboardInterrupt) as exc:
                loop.call_soon_threadsafe(_deliver, None, EOFError(str(exc)))
            else:
                loop.call_soon_threadsafe(_deliver, line, None)

        # Daemon thread: a prompt still waiting at shutdown must not keep the process alive.
        threading.Thread(target=_worker, name="console-input", daemon=True).start()
        return await future

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------

    def _on_event(self, event: MonitoringEvent) -> None:
        et = event.event_type
        payload = event.payload

        if et == EventType.AGENT_CONNECTED:
            self._notice(f"Turtle {payload.get('agent')} connected")

        elif et == EventType.AGENT_DISCONNECTED:
            self._notice(f"Turtle {payload.get('agent')} disconnected")

        elif et == EventType.TASK_FINISHED:
            text = (
                f"Task {payload.get('kind')} on {payload.get('agent_name')} "
                f"{payload.get('outcome')} after {payload.get('steps_run')} steps"
            )
            if payload.get("error"):
                text += f": {payload['error']}"
            elif payload.get("outcome") == "stopped":
                text += f" (found {payload.get('last_reply')})"
            self._notice(text)

    def _notice(self, text: str) -> None:
        self._console.print(f"\n[cyan]{escape(text)}[/cyan]")
