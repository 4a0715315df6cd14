"""
Resilience patterns module.

Components:
    - RetryConfig: Exponential backoff configuration with equal jitter
    - can_repeat: Idempotency check for retrying a request
    - Standard configs: DEFAULT_RETRY, NO_RETRY
"""

from .retry import (
    DEFAULT_RETRY,
    IDEMPOTENT_METHODS,
    NO_RETRY,
    RetryConfig,
    can_repeat,
)

__all__ = [
    "RetryConfig",
    "can_repeat",
    "IDEMPOTENT_METHODS",
    "DEFAULT_RETRY",
    "NO_RETRY",
]
