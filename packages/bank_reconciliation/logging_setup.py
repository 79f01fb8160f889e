"""Logging for ``bank_reconciliation``.

Entrypoints call :func:`configure_logging` once; library modules only call
:func:`get_logger` and never attach handlers. Until configuration happens the
package logger carries a ``NullHandler`` so library use stays silent.

Level precedence: explicit argument, then ``BANK_RECON_LOG_LEVEL``, then INFO.
With ``sql_echo=True`` (or ``BANK_RECON_SQL_ECHO=1``) the ``sqlalchemy.engine``
logger shares the package handler, which traces every statement the state
store issues.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "bank_reconciliation"
LEVEL_ENV = "BANK_RECON_LOG_LEVEL"
SQL_ECHO_ENV = "BANK_RECON_SQL_ECHO"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_handler: logging.Handler | None = None


def resolve_level(level: int | str | None = None) -> int:
    """Turn an int, a level name or a numeric string into a logging level."""

    if level is None:
        level = os.getenv(LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
    sql_echo: bool | None = None,
) -> logging.Handler:
    """Attach a single ``StreamHandler`` to the package logger.

    Repeated calls return the existing handler unchanged. ``stream`` defaults
    to the ``sys.stderr`` current at call time.
    """

    global _handler
    if _handler is not None:
        return _handler

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))

    pkg = logging.getLogger(PACKAGE_LOGGER)
    for existing in [h for h in pkg.handlers if isinstance(h, logging.NullHandler)]:
        pkg.removeHandler(existing)
    pkg.setLevel(resolved)
    pkg.addHandler(handler)
    pkg.propagate = False

    if sql_echo is None:
        sql_echo = os.getenv(SQL_ECHO_ENV, "").strip().lower() in {"1", "true", "yes", "on"}
    if sql_echo:
        sql = logging.getLogger("sqlalchemy.engine")
        sql.setLevel(logging.INFO)
        sql.addHandler(handler)

    _handler = handler
    return handler


def reset_logging() -> None:
    """Detach the configured handler so :func:`configure_logging` can run again."""

    global _handler
    if _handler is None:
        return
    for name in (PACKAGE_LOGGER, "sqlalchemy.engine"):
        logging.getLogger(name).removeHandler(_handler)
    logging.getLogger(PACKAGE_LOGGER).propagate = True
    logging.getLogger("sqlalchemy.engine").setLevel(logging.NOTSET)
    _handler = None


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if _handler is None and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "reset_logging", "resolve_level"]
