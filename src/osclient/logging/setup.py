"""Logging setup and configuration."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from osclient.logging.formatters import ConsoleFormatter, JSONFormatter

# Default settings
DEFAULT_LEVEL = logging.INFO
DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5
ROOT_LOGGER_NAME = "osclient"

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiohttp",
    "aiohttp.access",
    "aiohttp.client",
    "asyncio",
    "urllib3",
]


def setup_logging(
    level: int | str = DEFAULT_LEVEL,
    json_format: bool = False,
    log_file: Path | str | None = None,
    file_level: int | str = logging.DEBUG,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    suppress_noisy: bool = True,
    logger_name: str = ROOT_LOGGER_NAME,
) -> logging.Logger:
    """
    Configure console and optional rotating file logging for the client.

    Only the ``osclient`` logger tree is configured so an embedding
    application keeps control of the root logger.

    Args:
        level: Console handler level (default: INFO)
        json_format: Use JSON on the console instead of the human format
        log_file: Optional file path; file output is always JSON
        file_level: File handler level (default: DEBUG)
        max_bytes: Rotate the file once it reaches this size
        backup_count: Number of rotated files to keep
        suppress_noisy: Quiet down HTTP client loggers
        logger_name: Logger tree to configure

    Returns:
        Configured logger instance
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    if isinstance(file_level, str):
        file_level = logging.getLevelName(file_level.upper())

    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    logger.handlers.clear()
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())
    logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(JSONFormatter())
        logger.addHandler(file_handler)

    if suppress_noisy:
        for noisy_logger in NOISY_LOGGERS:
            logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
