# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Logging for Movement Analytics.

Every module logs through ``get_logger(__name__)``, so all records end up
under the ``movement_analytics`` logger. The analytics engine is a library:
until an application opts in, that logger only holds a ``NullHandler`` and
nothing is printed.

The CLI opts in once at startup with ``configure_logging(level)``, which
writes records to stderr (or any text stream) through a single handler.
The level comes from the argument, then from the
``MOVEMENT_ANALYTICS_LOG_LEVEL`` environment variable, then INFO.

``reset_logging()`` removes what ``configure_logging`` installed, so a host
application (or a test suite) can configure the package again.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "movement_analytics"
_LEVEL_ENV_VAR = "MOVEMENT_ANALYTICS_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_CONFIGURED = False
_HANDLER: logging.Handler | None = None


def _parse_level(level: int | str | None) -> int:
    """Turn ``level`` into a numeric logging level.

    Accepts ints, digit strings and level names in any case. Anything else
    (including None) falls back to the environment variable, then INFO.
    """
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level = level.strip().upper()
        if level.isdigit():
            return int(level)
        numeric = getattr(logging, level, None)
        if isinstance(numeric, int):
            return numeric
    env_val = os.getenv(_LEVEL_ENV_VAR)
    if env_val and env_val.strip().upper() != level:
        return _parse_level(env_val)
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Send package log records to ``stream``.

    Only the first call has an effect; later calls return immediately until
    ``reset_logging`` is called.

    Parameters
    ----------
    level:
        Level as int or name ("DEBUG", "warning"...). None means
        ``MOVEMENT_ANALYTICS_LOG_LEVEL``, or INFO when it is unset.
    fmt:
        Record format, ``"%(asctime)s %(name)s %(levelname)s %(message)s"``
        by default.
    stream:
        Text stream written to, stderr by default.
    """
    global _CONFIGURED, _HANDLER
    if _CONFIGURED:
        return

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(pkg_logger.handlers):
        if isinstance(h, logging.NullHandler):
            pkg_logger.removeHandler(h)

    numeric_level = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    pkg_logger.setLevel(numeric_level)
    pkg_logger.addHandler(handler)
    # Records are printed here only, never again by the root logger.
    pkg_logger.propagate = False

    _HANDLER = handler
    _CONFIGURED = True


def reset_logging() -> None:
    """Undo ``configure_logging``: drop its handler and restore the defaults."""
    global _CONFIGURED, _HANDLER
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _HANDLER is not None:
        pkg_logger.removeHandler(_HANDLER)
        _HANDLER = None
    pkg_logger.setLevel(logging.NOTSET)
    pkg_logger.propagate = True
    _CONFIGURED = False


def get_logger(name: str) -> logging.Logger:
    """Return the logger called ``name``.

    While logging is not configured and the package logger has no handler,
    a ``NullHandler`` is attached to it.
    """
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
