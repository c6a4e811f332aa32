"""Logging setup for the worker process."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(level: str = "info") -> None:
    """Route root logging through a rich console handler at ``level``."""

    normalized = (level or "info").strip().lower()
    resolved = _LEVELS.get(normalized)
    logging.basicConfig(
        level=resolved or logging.INFO,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False),
        ],
        force=True,
    )
    if resolved is None:
        logging.getLogger(__name__).warning(
            "Unknown log level %r, defaulting to info",
            level,
        )
