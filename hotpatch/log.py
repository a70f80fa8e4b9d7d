"""Logging setup for the CLI and shell. Library code only ever calls getLogger."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "hotpatch"


def configure_logging(level: str = "INFO", console: Console | None = None) -> logging.Logger:
    """
    Route hotpatch.* log records to a rich handler on stderr.

    Calling it again replaces the previous handler instead of stacking.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    return logger
