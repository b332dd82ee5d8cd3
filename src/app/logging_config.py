# src/app/logging_config.py
"""
Process logging for the turtle console.

Log records go to stderr so they never interleave with the prompt and
command output on stdout. Uvicorn runs with log_config=None, so its
records reach the same handler; its per-frame chatter (and that of the
websockets library underneath) stays at WARNING unless DEBUG is asked for.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Optional, Union

HANDLER_NAME = "turtle-console"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Only useful when debugging the transport itself.
NOISY_LOGGERS = ("uvicorn.access", "websockets")


def configure_logging(
    level: Union[int, str] = logging.WARNING,
    stream: Optional[IO[str]] = None,
) -> logging.Handler:
    """
    Attach the console's stderr handler to the root logger (once) and set levels.

    Calling it again only adjusts the levels, so `--log-level` can be applied
    after an earlier default call. Returns the installed handler.
    """
    root = logging.getLogger()
    numeric = logging.getLevelName(level) if isinstance(level, str) else level

    handler = next((h for h in root.handlers if h.get_name() == HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(stream=stream or sys.stderr)
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
        root.addHandler(handler)

    root.setLevel(numeric)
    quiet = numeric if numeric <= logging.DEBUG else max(numeric, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
    return handler
