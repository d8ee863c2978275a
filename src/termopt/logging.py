"""Logging utilities for termopt.

Module loggers live under the ``termopt`` namespace and carry no handlers of
their own; records propagate to the package logger. The package logger gets
a stderr handler at WARNING the first time a logger is requested, unless the
application has already attached one.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

_ROOT_NAME = "termopt"
_DEFAULT_LEVEL = logging.WARNING
_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

_configured = False


def _configure() -> None:
    global _configured
    if _configured:
        return

    root = logging.getLogger(_ROOT_NAME)
    if root.level == logging.NOTSET:
        root.setLevel(_DEFAULT_LEVEL)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get the logger for the given module name.

    Args:
        name: Logger name, typically ``__name__``. If None, returns the
            package logger.

    Returns:
        Logger under the ``termopt`` namespace.

    Example:
        >>> from termopt.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.debug("allocating storage")
    """
    _configure()
    if name is None or name == _ROOT_NAME:
        return logging.getLogger(_ROOT_NAME)
    if not name.startswith(f"{_ROOT_NAME}."):
        name = f"{_ROOT_NAME}.{name}"
    return logging.getLogger(name)


def set_log_level(level: int | str) -> None:
    """Set the level of the package logger, which module loggers inherit.

    Args:
        level: A ``logging`` level or its name ("DEBUG", "INFO", ...).
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)
    _configure()
    logging.getLogger(_ROOT_NAME).setLevel(level)
