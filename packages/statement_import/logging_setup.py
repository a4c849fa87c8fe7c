"""Logging configuration shared by every ``statement_import`` module.

Library modules only ever call ``get_logger("statement_import.<module>")``.
Handlers are attached in one place, :func:`configure_logging`, which the CLI
calls at startup; host applications may call it too or configure the
``"statement_import"`` logger themselves.

The level comes from the ``level`` argument, else the
``STATEMENT_IMPORT_LOG_LEVEL`` environment variable, else ``INFO``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "statement_import"
_LEVEL_ENV = "STATEMENT_IMPORT_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(_LEVEL_ENV)
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        # "10" or "DEBUG"
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelName(name)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Attach one ``StreamHandler`` to the package logger; later calls are no-ops.

    Parameters
    ----------
    level:
        ``int`` or level name. ``None`` reads ``STATEMENT_IMPORT_LOG_LEVEL``.
    fmt:
        Format string for the handler; defaults to timestamp, logger name,
        level and message.
    stream:
        Where the handler writes (``sys.stderr`` by default, so that command
        output on stdout stays machine-readable).
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(pkg_logger.handlers):
        if isinstance(h, logging.NullHandler):
            pkg_logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(resolved)
    # The package handler is the only output; don't repeat through root.
    pkg_logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``.

    Until :func:`configure_logging` runs, the package logger carries a
    ``NullHandler`` so that library use emits nothing on its own.
    """

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
