"""Logging configuration for the storefront admin service."""

import logging
import sys
from typing import Any, Union

from settings import Settings

# Root loggers of every module in the service
LOGGER_NAMES = [
    "main",
    "database",
    "media_store",
    "previews",
    "uploads",
    "repository",
    "projections",
    "ingestion",
]


def setup_logging(settings: Settings) -> None:
    """
    Configure the service loggers from settings.

    All loggers share one handler (stderr, or ``settings.log_file``) so the
    output is formatted consistently.

    Args:
        settings: Service settings
    """
    handler: Union[logging.FileHandler, "logging.StreamHandler[Any]"]
    handler = logging.FileHandler(settings.log_file) if settings.log_file else logging.StreamHandler(sys.stderr)

    if settings.log_format == "json":
        formatter = logging.Formatter(
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
            '"module": "%(name)s", "message": "%(message)s"}'
        )
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler.setFormatter(formatter)

    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(settings.log_level)

        for old_handler in logger.handlers[:]:
            old_handler.close()
            logger.removeHandler(old_handler)

        logger.addHandler(handler)
        # Avoid duplicate lines through the root logger
        logger.propagate = False
