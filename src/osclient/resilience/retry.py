"""
Retry configuration with exception-aware handling.

Uses the exception hierarchy to make retry decisions:
- Transient errors (429, 5xx, transport): retry with exponential backoff
- Auth errors: handled by the executor's one-shot re-authentication
- Permanent errors: fail immediately (no retry)

The delay sequence is computed per attempt so the executor's retry loop stays
an explicit counter-driven loop whose attempts and delays can be inspected.
"""

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass

from osclient.errors.exceptions import (
    OSClientError,
    RateLimited,
    ServerError,
)

logger = logging.getLogger(__name__)

# Methods that can be repeated without changing the outcome
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

RetryCallback = Callable[[Exception, int, float], None]


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    # Total sends allowed for a transient failure (first try included)
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0

    # If True, use retry_after from RateLimited/ServerError when available
    respect_retry_after: bool = True

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.max_attempts = int(self.max_attempts)
        self.base_delay = float(self.base_delay)
        self.max_delay = float(self.max_delay)
        self.exponential_base = float(self.exponential_base)
        # bool('false') would be True, so strings are parsed explicitly
        if isinstance(self.respect_retry_after, str):
            self.respect_retry_after = self.respect_retry_after.strip().lower() in (
                "1",
                "true",
                "yes",
                "on",
            )
        else:
            self.respect_retry_after = bool(self.respect_retry_after)
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    def get_delay(self, attempt: int, error: Exception | None = None) -> float:
        """
        Calculate delay with equal jitter to prevent thundering herd.

        Args:
            attempt: 0-indexed attempt number that just failed
            error: Optional exception to check for retry_after

        Returns:
            Delay in seconds
        """
        if (
            self.respect_retry_after
            and isinstance(error, (RateLimited, ServerError))
            and error.retry_after
        ):
            return min(error.retry_after, self.max_delay)

        base_delay = self.base_delay * (self.exponential_base**attempt)

        # Equal jitter: half fixed, half random
        jitter = random.uniform(0, base_delay / 2)
        delay = (base_delay / 2) + jitter

        return min(delay, self.max_delay)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """
        Determine if error should be retried.

        Args:
            error: The exception that occurred
            attempt: 0-indexed current attempt

        Returns:
            True if another attempt is allowed and the error is transient
        """
        if attempt >= self.max_attempts - 1:
            return False

        if isinstance(error, OSClientError):
            return error.is_retryable

        return False


def can_repeat(method: str, retry_safe: bool | None = None) -> bool:
    """
    Whether a request may be sent again after a transient failure.

    Idempotent methods always may; others only when the caller marked the
    request as safe to repeat.
    """
    if retry_safe is not None:
        return retry_safe
    return method.upper() in IDEMPOTENT_METHODS


def log_retry_attempt(
    operation: str,
    attempt: int,
    config: RetryConfig,
    delay: float,
    error: Exception,
) -> None:
    """Emit the retry-attempt warning with structured extras."""
    log_extras: dict[str, object] = {
        "operation": operation,
        "attempt": attempt + 1,
        "max_attempts": config.max_attempts,
        "delay_seconds": round(delay, 2),
        "error_type": type(error).__name__,
        "error_message": str(error)[:200],
    }
    status = getattr(error, "status_code", None)
    if status is not None:
        log_extras["http_status"] = status

    retry_after = getattr(error, "retry_after", None)
    if config.respect_retry_after and retry_after is not None:
        log_extras["server_retry_after"] = retry_after
        log_extras["delay_source"] = "server"
        message = "Retryable error for %s, will retry (using server-provided delay)"
    else:
        log_extras["delay_source"] = "exponential_backoff"
        message = "Retryable error for %s, will retry"

    logger.warning(message, operation, extra=log_extras)


def log_retry_failure(
    operation: str,
    attempt: int,
    config: RetryConfig,
    error: Exception,
    repeatable: bool = True,
) -> None:
    """Log a permanent error, a non-repeatable request, or exhausted retries."""
    extras = {
        "operation": operation,
        "attempt": attempt + 1,
        "max_attempts": config.max_attempts,
        "error_type": type(error).__name__,
        "error_message": str(error)[:200],
    }
    if not (isinstance(error, OSClientError) and error.is_retryable):
        logger.debug("Permanent error for %s, not retrying", operation, extra=extras)
    elif not repeatable:
        logger.warning(
            "Transient error for %s, request is not safe to repeat",
            operation,
            extra=extras,
        )
    else:
        logger.error("Max retries exhausted for %s", operation, extra=extras)


def safe_invoke_on_retry(
    on_retry: RetryCallback,
    error: Exception,
    attempt: int,
    delay: float,
    operation: str,
) -> None:
    """Call the on_retry callback, logging any errors it raises."""
    try:
        on_retry(error, attempt, delay)
    except Exception as cb_err:
        logger.warning(
            "Error in on_retry callback for %s: %s",
            operation,
            str(cb_err)[:100],
            extra={
                "operation": operation,
                "callback_error": str(cb_err)[:100],
            },
        )


# Default configurations
DEFAULT_RETRY = RetryConfig(max_attempts=3, base_delay=1.0)
NO_RETRY = RetryConfig(max_attempts=1)


__all__ = [
    "IDEMPOTENT_METHODS",
    "RetryCallback",
    "RetryConfig",
    "can_repeat",
    "log_retry_attempt",
    "log_retry_failure",
    "safe_invoke_on_retry",
    "DEFAULT_RETRY",
    "NO_RETRY",
]
