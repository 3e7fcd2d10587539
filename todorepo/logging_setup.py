"""Logging configuration for command line use."""

import logging
import sys


_HANDLER_NAME = "todorepo-console"


def configure_logging(level: str | int = logging.WARNING) -> None:
    """Send todorepo logs to stderr at the given level.

    Safe to call more than once; the console handler is only added once.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    root = logging.getLogger("todorepo")
    root.setLevel(level)

    if any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
