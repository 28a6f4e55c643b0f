"""Logging configuration and exception logging helpers."""

import logging
import sys
from pathlib import Path
from typing import Optional
from enum import Enum

from .exceptions import (
    ConfigurationError,
    ConnectionError,
    NotConnectedError,
    PersistenceError,
    RetryExhaustedError,
)

LOGGER_NAME = "whatsapp_session"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class LogLevel(str, Enum):
    """Logging level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def get_logger() -> logging.Logger:
    """Get the package root logger."""
    return logging.getLogger(LOGGER_NAME)


def _has_file_handler(logger: logging.Logger, log_path: Path) -> bool:
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler):
            if Path(handler.baseFilename) == log_path.resolve():
                return True
    return False


def configure_logging(
    log_level: LogLevel = LogLevel.INFO, log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure the package logger.

    A console handler is installed once. Each distinct log file gets its own
    ``FileHandler``; configuring the same file twice is a no-op, so several
    clients sharing a log path do not duplicate lines.

    Args:
        log_level: Level for the console handler
        log_file: Optional log file path

    Returns:
        The configured package logger
    """
    logger = get_logger()
    logger.setLevel(logging.DEBUG)

    console = next(
        (
            h
            for h in logger.handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
        ),
        None,
    )
    if console is None:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(console)
    console.setLevel(getattr(logging, LogLevel(log_level).value))

    if log_file:
        log_path = Path(log_file).expanduser()
        if not _has_file_handler(logger, log_path):
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(file_handler)

    return logger


def log_exception(
    exception: Exception,
    context: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log an exception at a level matching its type.

    Args:
        exception: Exception to log
        context: Operation the exception came from
        logger: Logger to use (default: package logger)
    """
    logger = logger or get_logger()
    message = f"[{context}] {type(exception).__name__}: {exception}"

    if isinstance(exception, (ConfigurationError, NotConnectedError)):
        logger.warning(message)
    elif isinstance(
        exception, (ConnectionError, PersistenceError, RetryExhaustedError)
    ):
        logger.error(message)
    else:
        logger.error(f"[{context}] Unexpected error: {type(exception).__name__}: {exception}")
