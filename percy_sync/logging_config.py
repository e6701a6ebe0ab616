"""Logging setup for the command-line entry point.

Library modules only create ``logging.getLogger(__name__)`` loggers; the
CLI calls ``configure_logging`` once to render them through Rich.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "INFO", console: Console | None = None) -> None:
    """Route root logging through a ``RichHandler`` at *level*."""
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    # urllib3 logs every pooled connection at DEBUG.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
