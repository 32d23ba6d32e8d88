"""Log rendering for the CLI.

Library modules only create ``logging.getLogger(__name__)`` loggers; the
CLI decides where records go by calling :func:`configure_logging` once.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_NAME = "lunepack-rich"


def level_for(verbosity: int) -> int:
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def configure_logging(verbosity: int = 0, *, console: Console | None = None) -> logging.Handler:
    """Send ``lunepack`` log records to stderr through rich.

    Calling it again replaces the previous handler instead of adding a
    second one.
    """
    logger = logging.getLogger("lunepack")
    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=False,
        show_path=verbosity >= 2,
        markup=False,
        rich_tracebacks=verbosity >= 2,
    )
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level_for(verbosity))
    return handler
