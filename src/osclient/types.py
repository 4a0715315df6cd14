"""
Core types and protocols used across modules.

This module provides base enums and protocol definitions that are shared
across the client core to keep classification and seams consistent.
"""

from collections.abc import Awaitable
from enum import Enum
from typing import Protocol


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that should retry with backoff
                   (e.g., connection resets, 429/5xx responses)
        AUTH: Authentication failures requiring re-authentication
              (e.g., 401 responses, rejected credentials)
        PERMANENT: Non-retriable failures that won't succeed on retry
                   (e.g., 404, 409, missing catalog entries)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class Interface(str, Enum):
    """Network exposure class of a catalog endpoint."""

    PUBLIC = "public"
    INTERNAL = "internal"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: "str | Interface") -> "Interface":
        """Accept enum members, plain names and legacy ``publicURL`` spellings."""
        if isinstance(value, Interface):
            return value
        normalized = str(value).strip().lower()
        if normalized.endswith("url"):
            normalized = normalized[:-3]
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(
                f"Unknown interface '{value}'. "
                f"Expected one of: {[i.value for i in cls]}"
            ) from None


class Sleeper(Protocol):
    """Delay primitive used by the retry loop and the waiter."""

    def __call__(self, delay: float) -> Awaitable[None]: ...


__all__ = [
    "ErrorCategory",
    "Interface",
    "Sleeper",
]
