# ConsoleConfig, ServerConfig, LoggingConfig dataclasses
# src/env/schema.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ServerConfig:
    """Where turtles connect: ws://<host>:<port><path>."""
    host: str = "0.0.0.0"
    port: int = 8888
    path: str = "/"


@dataclass
class LoggingConfig:
    """Process logging and the optional JSONL monitoring event log."""
    level: str = "WARNING"            # stdlib level name
    event_log: Optional[str] = None   # relative paths resolve against the project root


@dataclass
class TaskLimits:
    """Upper bounds on operator-supplied task sizes."""
    max_repeat: int = 256
    max_search_steps: int = 128


@dataclass
class ConsoleConfig:
    """Resolved configuration for one console process."""
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    tasks: TaskLimits = field(default_factory=TaskLimits)
    prompt_suffix: str = "> "
