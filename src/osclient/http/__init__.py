"""
Authenticated HTTP request execution.

Provides the Request/Response values, the aiohttp session factory and the
RequestExecutor that injects tokens and retries transient failures.
"""

from osclient.http.executor import (
    AUTH_TOKEN_HEADER,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    RequestExecutor,
)
from osclient.http.models import Request, Response
from osclient.http.session import create_session

__all__ = [
    "RequestExecutor",
    "Request",
    "Response",
    "create_session",
    "AUTH_TOKEN_HEADER",
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
]
