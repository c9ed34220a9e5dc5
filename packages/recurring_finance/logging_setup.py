"""Logging for the ``recurring_finance`` package.

Library modules log through ``get_logger`` and never attach handlers; the
package root logger carries a ``NullHandler`` until an entrypoint calls
``configure_logging``. The CLI does that once per invocation, honouring
``--log-level`` first and ``RECURRING_FINANCE_LOG_LEVEL`` second.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "recurring_finance"
_LEVEL_ENV = "RECURRING_FINANCE_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_handler: logging.Handler | None = None


def resolve_level(level: int | str | None = None) -> int:
    """Numeric level for ``level``; ``None`` reads the environment.

    An explicit unknown name raises ``ValueError``. A bad environment value
    is ignored in favour of ``INFO``.
    """

    if isinstance(level, int):
        return level
    if level is None:
        raw = os.getenv(_LEVEL_ENV, "").strip()
        if not raw:
            return logging.INFO
        try:
            return resolve_level(raw)
        except ValueError:
            return logging.INFO

    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelNamesMapping().get(name)
    if numeric is None:
        raise ValueError(f"unknown log level: {level!r}")
    return numeric


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """Attach the package handler, or retune it when already attached.

    Repeated calls keep a single handler and only change its level (and the
    format when one is passed).
    """

    global _handler
    resolved = resolve_level(level)
    logger = logging.getLogger(_PKG_LOGGER_NAME)

    if _handler is None:
        for h in list(logger.handlers):
            if isinstance(h, logging.NullHandler):
                logger.removeHandler(h)
        _handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
        _handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))
        logger.addHandler(_handler)
        logger.propagate = False
    elif fmt:
        _handler.setFormatter(logging.Formatter(fmt))

    _handler.setLevel(resolved)
    logger.setLevel(resolved)
    return _handler


def reset_logging() -> None:
    """Detach the package handler and restore propagation."""

    global _handler
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is not None:
        logger.removeHandler(_handler)
        _handler = None
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def get_logger(name: str) -> logging.Logger:
    """Package logger for ``name`` (``"duplicates"`` or ``"recurring_finance.duplicates"``)."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    if name != _PKG_LOGGER_NAME and not name.startswith(_PKG_LOGGER_NAME + "."):
        name = f"{_PKG_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
