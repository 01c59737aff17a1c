"""Logging configuration for the Gekko console.

Console output goes to stderr so streamed chat text on stdout stays clean.
HTTP client libraries are held at WARNING unless the console runs with
DEBUG, in which case httpx request lines are shown too.
"""

import logging
import sys
from typing import Literal

from gekko.settings import get_settings

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

NOISY_LOGGERS = ("httpcore", "httpx", "asyncio")

LOG_FORMAT = "%(levelname)s | %(name)s | %(message)s"


def suppress_noisy_loggers(app_level: int = logging.INFO) -> None:
    """Quiet the HTTP stack's loggers for the given application level."""
    for name in NOISY_LOGGERS:
        level = logging.WARNING
        if name == "httpx" and app_level <= logging.DEBUG:
            level = logging.INFO
        library_logger = logging.getLogger(name)
        library_logger.setLevel(level)
        library_logger.handlers.clear()


def configure_logging(level: LogLevel | None = None) -> None:
    """Route log records to stderr.

    Args:
        level: Override the level; defaults to DEBUG when ``settings.debug``
            is set, otherwise ``settings.log_level``.
    """
    settings = get_settings()
    log_level = getattr(logging, level or ("DEBUG" if settings.debug else settings.log_level))

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    logging.getLogger("gekko").setLevel(log_level)
    suppress_noisy_loggers(log_level)
