"""
Logging for the ``droste`` package.

Library modules only call ``get_logger()``; the CLI calls
``configure_logging`` once at startup to attach handlers.
"""

import logging
import logging.handlers
from typing import Optional

_LOGGER_NAME = "droste"


def get_logger() -> logging.Logger:
    """The package logger. Silent until ``configure_logging`` attaches handlers."""
    return logging.getLogger(_LOGGER_NAME)


def _build_formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


def configure_logging(
    *,
    level: int = logging.INFO,
    console: bool = True,
    log_file: Optional[str] = None,
    rotate_bytes: int = 5 * 1024 * 1024,
    rotate_count: int = 3,
) -> logging.Logger:
    """
    Attach console and file handlers to the package logger.

    Calling it again replaces the previous handlers, so repeated CLI runs in
    one process never log twice.

    Args:
        level: Threshold for the logger and every handler.
        console: Log to stderr.
        log_file: Rotating log file path, or None for no file logging.
        rotate_bytes: Size at which the log file rolls over.
        rotate_count: Rolled-over files to keep.

    Returns:
        The configured logger.
    """
    logger = get_logger()
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    fmt = _build_formatter()
    if console:
        stream = logging.StreamHandler()
        stream.setLevel(level)
        stream.setFormatter(fmt)
        logger.addHandler(stream)
    if log_file:
        rotating = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=rotate_bytes, backupCount=rotate_count, encoding="utf-8"
        )
        rotating.setLevel(level)
        rotating.setFormatter(fmt)
        logger.addHandler(rotating)
    return logger
