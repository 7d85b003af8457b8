"""Logging setup for entry points. Library modules only call logging.getLogger(__name__)."""

import logging
import sys

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """Attach a stderr handler to the package logger.

    Calling it again replaces the handler instead of stacking duplicates.

    Raises:
        ValueError: For an unknown level name.
    """
    level = LOG_LEVELS.get(log_level.upper())
    if level is None:
        raise ValueError(f"Unknown log level: {log_level}")

    logger = logging.getLogger("starsatnight")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT, DEFAULT_DATE_FORMAT))
    logger.addHandler(handler)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logger
