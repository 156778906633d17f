"""Logging setup for the command-line application."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def configure_logging(verbosity: int = 0) -> None:
    """Configure the root logger with a rich handler on stderr.

    Args:
        verbosity: Number of ``-v`` flags given (0 = warnings only).
    """
    root = logging.getLogger()
    root.handlers.clear()

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        show_time=verbosity > 1,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(_LEVELS[min(max(verbosity, 0), len(_LEVELS) - 1)])
