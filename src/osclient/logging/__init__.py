"""
Structured logging module.

Provides JSON and console logging with request context propagation.
"""

from osclient.logging.context import (
    LogContext,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from osclient.logging.formatters import ConsoleFormatter, JSONFormatter
from osclient.logging.setup import get_logger, setup_logging
from osclient.logging.utilities import log_exception, log_with_context

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "LogContext",
    # Utilities
    "log_with_context",
    "log_exception",
]
