# log.py
# SPDX-License-Identifier: MIT
"""Utilities for package-wide logging configuration.

Installs a NullHandler on the package logger so embedding applications do
not see "no handler" warnings, and exposes helpers for runtime
configuration from the CLI or config files.
"""

from __future__ import annotations

import logging
import sys

__all__ = [
    "PACKAGE_LOGGER_NAME",
    "get_logger",
    "configure_logging",
]

PACKAGE_LOGGER_NAME = "lingofuse"

logging.getLogger(PACKAGE_LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a named logger scoped to lingofuse.

    Args:
        name (str | None): Fully qualified logger name. Defaults to the
            package logger when omitted.

    Returns:
        logging.Logger: Logger instance for the requested name.
    """
    return logging.getLogger(name or PACKAGE_LOGGER_NAME)


def _coerce_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    name = str(level).strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        raise ValueError(f"Unknown logging level: {level!r}")
    return value


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream = None,
    fmt: str | None = None,
    datefmt: str | None = None,
    propagate: bool | None = None,
    logger_name: str = PACKAGE_LOGGER_NAME,
) -> logging.Logger:
    """Configure a stream handler for a lingofuse logger.

    Args:
        level (int | str): Logging level or level name. Defaults to
            logging.INFO.
        stream (IO[str] | None): Target stream; defaults to sys.stderr.
        fmt (str | None): Log format string. Defaults to a basic format when
            omitted.
        datefmt (str | None): Date format string for the handler.
        propagate (bool | None): Whether records bubble up to ancestor
            loggers. When None, defaults to True so root handlers (e.g.
            pytest caplog) still see engine messages.
        logger_name (str): Logger name to configure. Defaults to the package
            logger.

    Returns:
        logging.Logger: Logger configured with a single StreamHandler.
    """
    logger = get_logger(logger_name or PACKAGE_LOGGER_NAME)
    logger.setLevel(_coerce_level(level))
    logger.propagate = True if propagate is None else bool(propagate)

    if stream is None:
        stream = sys.stderr
    if fmt is None:
        fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    # One StreamHandler per logger; reuse it with the new format and a live stream.
    has_stream = False
    for handler in logger.handlers:
        if not isinstance(handler, logging.StreamHandler):
            continue
        has_stream = True
        handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
        if getattr(getattr(handler, "stream", None), "closed", False):
            handler.stream = stream
    if not has_stream:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
        logger.addHandler(handler)

    return logger

