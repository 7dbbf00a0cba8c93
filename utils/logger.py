"""
utils/logger.py
===============
Sets up a consistent, human-readable logger for the whole application.
Uses Python's standard `logging` module.
"""
import logging
import os
import sys
from typing import Any

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Names handed out by get_logger, so set_level can reach all of them
_loggers: set = set()


def get_logger(name: str) -> logging.Logger:
    """Return a named logger configured with a stream handler.

    Calling this multiple times with the same name returns the same logger
    (standard Python logging behaviour), so it is safe to call at module level.
    """
    logger = logging.getLogger(name)

    # Only add a handler if none exists yet (avoids duplicate log lines)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
        logger.addHandler(handler)
        logger.propagate = False

    # Until main.py applies the validated settings, read LOG_LEVEL directly
    level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    _loggers.add(name)
    return logger


def set_level(level: int) -> None:
    """Apply *level* to every logger created through :func:`get_logger`."""
    for name in _loggers:
        logging.getLogger(name).setLevel(level)


def fields(**details: Any) -> str:
    """Render structured details as ``key=value`` pairs, skipping ``None`` values."""
    return " ".join(f"{key}={value}" for key, value in details.items() if value is not None)
