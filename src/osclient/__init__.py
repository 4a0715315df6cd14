"""
Client core for a cloud-platform SDK.

Authenticates against an identity service, resolves per-service endpoints
from the returned catalog, executes authenticated requests with retry,
pages through list calls and waits for long-running operations.

Modules:
    auth        - Credentials, identity exchange, single-flight token refresh
    http        - Request/Response values and the RequestExecutor
    resilience  - Retry with exponential backoff and idempotency rules
    pagination  - Marker-based Paginator and page parsers
    waiter      - Polling state machine for long-running operations
    errors      - Error classification and exception hierarchy
    logging     - Structured JSON logging with request context
    config      - ClientConfig loaded from YAML
    connection  - Facade wiring all of the above

Design Principles:
    - Async-first on asyncio and aiohttp
    - Injectable delay primitives so retry and wait timing is testable
    - Typed errors carrying enough context to diagnose without re-issuing
"""

from .types import ErrorCategory, Interface

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
    "Interface",
    "__version__",
]
