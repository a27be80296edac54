"""Logging setup for the renderer and the ``render`` command.

Every module logs through ``logging.getLogger(__name__)``, so all records
pass through the ``src.csgtrace`` package logger configured here.

Example:
    >>> import logging
    >>> from src.csgtrace.logging_config import setup_logging
    >>> setup_logging(logging.DEBUG, log_file="render.log")
"""

import logging
import sys

PACKAGE_LOGGER = "src.csgtrace"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> None:
    """Send package log records to stderr and, optionally, to a file.

    Calling it again replaces the handlers of the previous call, so records
    are never written twice.

    Args:
        level: Threshold for the logger and its handlers, e.g. logging.DEBUG.
        log_file: Path of a log file, truncated on open. None logs to stderr only.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug("Logging initialised at level %s", logging.getLevelName(level))
