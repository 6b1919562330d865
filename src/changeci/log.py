"""Logging configuration for changeci.

Diagnostics (git commands, compiled step commands, worktree paths) go
through the standard `logging` tree under the `changeci` logger; user-facing
progress goes through `changeci.ui.console`.
"""

from __future__ import annotations

import logging
import os
import sys

DEFAULT_LOG_LEVEL = "WARNING"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the `changeci` logger with a single stderr handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR). Defaults to
               WARNING; can be overridden with CHANGECI_LOG_LEVEL.

    Returns:
        The root changeci logger.
    """
    if level is None:
        level = os.environ.get("CHANGECI_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_level = getattr(logging, level.upper(), logging.WARNING)

    logger = logging.getLogger("changeci")
    logger.setLevel(log_level)
    logger.propagate = False

    # Idempotent: repeated CLI invocations in one process (tests) reuse the handler
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)

    return logger
