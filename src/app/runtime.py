# src/app/runtime.py
"""
Process entrypoint: wires config, logging, monitoring, the fleet session,
the websocket gateway and the console onto one asyncio event loop.

Usage:
    python -m app
    python -m app --port 9000 --log-level INFO
    turtle-console --config config/console.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from rich.console import Console

from console.dispatcher import CommandDispatcher
from console.loop import ConsoleLoop
from env.loader import load_console_config, resolve_event_log
from env.schema import ConsoleConfig
from fleet.session import FleetSession
from gateway.server import create_server
from monitoring.bus import EventBus
from monitoring.logger import JsonFileLogger

from .logging_config import configure_logging

log = logging.getLogger(__name__)


def build_monitoring_stack(log_path: Optional[Path] = None) -> Tuple[EventBus, Optional[JsonFileLogger]]:
    """
    Construct the monitoring stack for one console process.

    Returns a fresh EventBus and, when `log_path` is set, the JsonFileLogger
    writing its events as JSONL (the caller closes it on shutdown).
    """
    bus = EventBus()
    file_logger = JsonFileLogger(log_path, bus) if log_path is not None else None
    return bus, file_logger


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Drive a fleet of ComputerCraft turtles over websockets."
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to console.yaml")
    parser.add_argument("--host", default=None, help="Interface to listen on")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on")
    parser.add_argument("--log-level", default=None, help="Python logging level (e.g. INFO)")
    return parser.parse_args(argv)


def apply_overrides(config: ConsoleConfig, args: argparse.Namespace) -> ConsoleConfig:
    """Command-line flags win over the config file and environment."""
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.log_level:
        config.logging.level = args.log_level.upper()
    return config


async def run_console(config: ConsoleConfig, console: Optional[Console] = None) -> None:
    """Serve turtles and run the console until the operator quits."""
    console = console or Console()
    bus, file_logger = build_monitoring_stack(resolve_event_log(config))
    session = FleetSession(bus=bus)
    server = create_server(session, config.server)
    dispatcher = CommandDispatcher(session, console, limits=config.tasks)
    console_loop = ConsoleLoop(session, dispatcher, console, prompt_suffix=config.prompt_suffix)

    server_task = asyncio.create_task(server.serve(), name="gateway")
    console_task = asyncio.create_task(console_loop.run(), name="console")
    try:
        done, _ = await asyncio.wait(
            {server_task, console_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
        if server_task in done and not server_task.cancelled() and server_task.exception():
            log.error("Gateway stopped: %r", server_task.exception())
    finally:
        console_task.cancel()
        await session.close_all()
        server.should_exit = True
        await asyncio.gather(server_task, console_task, return_exceptions=True)
        if file_logger is not None:
            file_logger.close()


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    config = apply_overrides(load_console_config(args.config), args)
    configure_logging(config.logging.level)

    console = Console()
    console.print(
        f"Waiting for turtles on ws://{config.server.host}:{config.server.port}{config.server.path}"
        " (type 'help' for commands)"
    )
    try:
        asyncio.run(run_console(config, console))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
