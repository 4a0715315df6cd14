"""
Unified exception hierarchy for the client core.

Provides typed exceptions with retry classification so the request executor,
paginator and waiter can make consistent recovery decisions, and callers get
enough context (status, body excerpt, attempt count) to diagnose a failure
without re-issuing the call.
"""

from typing import Any

from osclient.types import ErrorCategory

BODY_EXCERPT_LENGTH = 200


class OSClientError(Exception):
    """
    Base exception for all client core errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category == ErrorCategory.TRANSIENT

    @property
    def should_refresh_auth(self) -> bool:
        return self.category == ErrorCategory.AUTH

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Authentication and Catalog Errors
# =============================================================================


class AuthError(OSClientError):
    """Credentials rejected, identity exchange failed, or a retried 401."""

    category = ErrorCategory.AUTH


class CatalogError(OSClientError):
    """No catalog entry matches the requested service/interface/region."""

    category = ErrorCategory.PERMANENT

    def __init__(
        self,
        message: str,
        service_type: str | None = None,
        interface: str | None = None,
        region: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(
            message,
            cause,
            {"service_type": service_type, "interface": interface, "region": region},
        )
        self.service_type = service_type
        self.interface = interface
        self.region = region


# =============================================================================
# Transient Errors
# =============================================================================


class TransientError(OSClientError):
    """Base class for transient/retriable errors."""

    category = ErrorCategory.TRANSIENT


class TransportError(TransientError):
    """Connection failure or timeout before a response was received."""

    def __init__(
        self,
        message: str,
        attempts: int = 1,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.attempts = attempts


# =============================================================================
# HTTP Status Errors
# =============================================================================


class HttpError(OSClientError):
    """
    Non-success HTTP response mapped to a typed error.

    Attributes:
        status_code: HTTP status of the final response (None when synthesized)
        body_excerpt: First characters of the response body
        method: HTTP method of the request
        url: Request URL
        attempts: Number of sends made before surfacing the error
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body_excerpt: str = "",
        method: str | None = None,
        url: str | None = None,
        attempts: int = 1,
        cause: Exception | None = None,
    ):
        super().__init__(
            message,
            cause,
            {"status_code": status_code, "method": method, "url": url},
        )
        self.status_code = status_code
        self.body_excerpt = body_excerpt
        self.method = method
        self.url = url
        self.attempts = attempts

    def __str__(self) -> str:
        parts = [self.message]
        if self.attempts > 1:
            parts.append(f"after {self.attempts} attempts")
        if self.body_excerpt:
            parts.append(f"Body: {self.body_excerpt}")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class ClientError(HttpError):
    """4xx response that is not 401, 404, 409 or 429."""

    category = ErrorCategory.PERMANENT


class NotFound(ClientError):
    """Resource does not exist (404)."""

    def __init__(self, message: str, status_code: int | None = 404, **kwargs: Any):
        super().__init__(message, status_code=status_code, **kwargs)


class Conflict(ClientError):
    """Request conflicts with the current resource state (409)."""


class RateLimited(HttpError):
    """Rate limited (429) - should back off."""

    category = ErrorCategory.TRANSIENT

    def __init__(self, message: str, retry_after: float | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after  # Seconds to wait if provided


class ServerError(HttpError):
    """5xx response, may recover on retry."""

    category = ErrorCategory.TRANSIENT

    def __init__(self, message: str, retry_after: float | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


# =============================================================================
# Pagination Errors
# =============================================================================


class PaginationError(OSClientError):
    """List response cannot be paged: a repeated marker or a malformed page."""

    category = ErrorCategory.PERMANENT

    def __init__(self, message: str, marker: str | None = None, pages: int = 0):
        super().__init__(message, context={"marker": marker, "pages": pages})
        self.marker = marker
        self.pages = pages


class TooManyItems(OSClientError):
    """A query expected to match exactly one item matched several."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Waiter Errors
# =============================================================================


class WaitError(OSClientError):
    """Base class for waiter terminal failures."""

    category = ErrorCategory.PERMANENT


class WaitTimeout(WaitError):
    """Entity did not reach a target state before the timeout."""

    def __init__(
        self,
        message: str,
        last_state: Any = None,
        elapsed: float = 0.0,
        probes: int = 0,
    ):
        super().__init__(
            message,
            context={"last_state": last_state, "elapsed": elapsed, "probes": probes},
        )
        self.last_state = last_state
        self.elapsed = elapsed
        self.probes = probes


class WaitFailedState(WaitError):
    """Entity entered one of the failure states."""

    def __init__(self, state: Any, entity: Any = None, message: str | None = None):
        super().__init__(
            message or f"Entity reached failure state {state!r}",
            context={"state": state},
        )
        self.state = state
        self.entity = entity


class Cancelled(WaitError):
    """Wait was cancelled through its cancel signal."""


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_http_status(status_code: int) -> ErrorCategory:
    """Classify HTTP status code into error category."""
    if 200 <= status_code < 400:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code == 401:
        return ErrorCategory.AUTH

    if status_code == 429:
        return ErrorCategory.TRANSIENT  # Rate limited

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT  # 403 included, never retried

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def parse_retry_after(value: str | None) -> float | None:
    """Parse a delta-seconds ``Retry-After`` header; HTTP dates are ignored."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return max(seconds, 0.0)


def error_for_status(
    status_code: int,
    body: str = "",
    method: str | None = None,
    url: str | None = None,
    attempts: int = 1,
    retry_after: float | None = None,
) -> HttpError:
    """
    Map a non-success status to the matching HttpError subclass.

    Args:
        status_code: HTTP status of the response
        body: Decoded response body (truncated into the excerpt)
        method: Request method, for the message
        url: Request URL, for the message
        attempts: Sends made so far
        retry_after: Server-provided delay hint in seconds

    Returns:
        Typed HttpError; 401 is mapped to ClientError here because the
        executor surfaces a repeated 401 as AuthError itself.
    """
    excerpt = body[:BODY_EXCERPT_LENGTH]
    target = f"{method} {url}" if method and url else (url or "request")
    message = f"HTTP {status_code} for {target}"
    kwargs: dict[str, Any] = {
        "status_code": status_code,
        "body_excerpt": excerpt,
        "method": method,
        "url": url,
        "attempts": attempts,
    }

    if status_code == 404:
        return NotFound(message, **kwargs)
    if status_code == 409:
        return Conflict(message, **kwargs)
    if status_code == 429:
        return RateLimited(message, retry_after=retry_after, **kwargs)
    if status_code >= 500:
        return ServerError(message, retry_after=retry_after, **kwargs)
    return ClientError(message, **kwargs)


def is_retryable_error(exc: Exception) -> bool:
    """Check if exception should be retried by the backoff loop."""
    if isinstance(exc, OSClientError):
        return exc.is_retryable
    return False


__all__ = [
    "BODY_EXCERPT_LENGTH",
    "OSClientError",
    "AuthError",
    "CatalogError",
    "TransientError",
    "TransportError",
    "HttpError",
    "ClientError",
    "NotFound",
    "Conflict",
    "RateLimited",
    "ServerError",
    "PaginationError",
    "TooManyItems",
    "WaitError",
    "WaitTimeout",
    "WaitFailedState",
    "Cancelled",
    "classify_http_status",
    "parse_retry_after",
    "error_for_status",
    "is_retryable_error",
]
