# src/env/loader.py
"""
Loads config/console.yaml into ConsoleConfig, applying environment overrides.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .schema import ConsoleConfig, LoggingConfig, ServerConfig, TaskLimits


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[2]
CONFIG_ROOT = PROJECT_ROOT / "config"
DEFAULT_CONFIG_PATH = CONFIG_ROOT / "console.yaml"

HOST_ENV_VAR = "TURTLE_CONSOLE_HOST"
PORT_ENV_VAR = "TURTLE_CONSOLE_PORT"


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping from `path`."""
    if not path.exists():
        raise FileNotFoundError(f"Missing config file: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at top of {path}, got {type(data)}")
    return data


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a mapping, got {type(value)}")
    return value


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_console_config(path: Optional[Path] = None) -> ConsoleConfig:
    """
    Main entry point: returns a fully resolved ConsoleConfig.

    Reads `path` (default: config/console.yaml), then applies the
    TURTLE_CONSOLE_HOST / TURTLE_CONSOLE_PORT environment overrides.
    """
    raw = _load_yaml(path or DEFAULT_CONFIG_PATH)

    server_raw = _section(raw, "server")
    logging_raw = _section(raw, "logging")
    tasks_raw = _section(raw, "tasks")
    console_raw = _section(raw, "console")

    defaults = ServerConfig()
    server = ServerConfig(
        host=str(os.getenv(HOST_ENV_VAR) or server_raw.get("host", defaults.host)),
        port=int(os.getenv(PORT_ENV_VAR) or server_raw.get("port", defaults.port)),
        path=str(server_raw.get("path", defaults.path)),
    )

    event_log = logging_raw.get("event_log")
    logging_cfg = LoggingConfig(
        level=str(logging_raw.get("level", LoggingConfig.level)).upper(),
        event_log=str(event_log) if event_log else None,
    )

    limits = TaskLimits(
        max_repeat=int(tasks_raw.get("max_repeat", TaskLimits.max_repeat)),
        max_search_steps=int(tasks_raw.get("max_search_steps", TaskLimits.max_search_steps)),
    )

    config = ConsoleConfig(
        server=server,
        logging=logging_cfg,
        tasks=limits,
        prompt_suffix=str(console_raw.get("prompt_suffix", ConsoleConfig.prompt_suffix)),
    )

    # perform basic validation before returning
    _validate(config)
    return config


def resolve_event_log(config: ConsoleConfig) -> Optional[Path]:
    """Absolute path of the JSONL event log, or None if disabled."""
    if not config.logging.event_log:
        return None
    path = Path(config.logging.event_log)
    return path if path.is_absolute() else PROJECT_ROOT / path


def _validate(config: ConsoleConfig) -> None:
    """Minimal sanity checks for the console configuration."""
    if not 0 < config.server.port < 65536:
        raise ValueError(f"Invalid server port: {config.server.port}")
    if not config.server.path.startswith("/"):
        raise ValueError(f"Server path must start with '/', got {config.server.path!r}")

    # stdlib logging knows the level name
    if not isinstance(logging.getLevelName(config.logging.level), int):
        raise ValueError(f"Unknown logging level: {config.logging.level}")

    if config.tasks.max_repeat < 1 or config.tasks.max_search_steps < 1:
        raise ValueError("Task limits must be positive")
