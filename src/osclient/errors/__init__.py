"""
Error classification and exception hierarchy.

Provides:
- OSClientError hierarchy for typed exceptions
- HTTP status mapping into typed errors
- Classification utilities for retry decisions
"""

from osclient.errors.exceptions import (
    AuthError,
    Cancelled,
    CatalogError,
    ClientError,
    Conflict,
    HttpError,
    NotFound,
    # Base classes
    OSClientError,
    PaginationError,
    RateLimited,
    ServerError,
    TooManyItems,
    TransientError,
    TransportError,
    WaitError,
    WaitFailedState,
    WaitTimeout,
    # Classification utilities
    classify_http_status,
    error_for_status,
    is_retryable_error,
    parse_retry_after,
)
from osclient.types import ErrorCategory

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "OSClientError",
    "TransientError",
    # Auth / catalog
    "AuthError",
    "CatalogError",
    # HTTP
    "HttpError",
    "ClientError",
    "NotFound",
    "Conflict",
    "RateLimited",
    "ServerError",
    "TransportError",
    # Pagination
    "PaginationError",
    "TooManyItems",
    # Waiter
    "WaitError",
    "WaitTimeout",
    "WaitFailedState",
    "Cancelled",
    # Classification utilities
    "classify_http_status",
    "error_for_status",
    "is_retryable_error",
    "parse_retry_after",
]
