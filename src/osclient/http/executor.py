"""
Authenticated request execution with re-authentication and retry.

The executor sends one Request at a time:

- the current token is obtained right before every send and injected as
  ``X-Auth-Token``
- a 401 triggers exactly one forced re-authentication and one resend
- 429/5xx and transport failures are retried with exponential backoff up to
  the configured attempt cap, for requests that are safe to repeat
- any other 4xx is mapped to a typed error and surfaced at once

Every log line of one execute() call carries the same request id.
"""

import asyncio
import logging
import uuid
from typing import Any

import aiohttp

from osclient.auth.models import Token
from osclient.auth.session import AuthSession
from osclient.errors.exceptions import (
    AuthError,
    HttpError,
    TransportError,
    error_for_status,
    parse_retry_after,
)
from osclient.http.models import Request, Response
from osclient.logging.context import LogContext
from osclient.resilience.retry import (
    DEFAULT_RETRY,
    RetryCallback,
    RetryConfig,
    log_retry_attempt,
    log_retry_failure,
    safe_invoke_on_retry,
)
from osclient.types import Sleeper

logger = logging.getLogger(__name__)

AUTH_TOKEN_HEADER = "X-Auth-Token"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 60.0


class RequestExecutor:
    """
    Sends authenticated requests through a shared aiohttp session.

    Any number of execute() calls may run concurrently against the same
    AuthSession; their only shared state is the session's token.

    Usage:
        async with create_session() as http:
            executor = RequestExecutor(auth, http)
            response = await executor.get("/servers", service_type="compute")
            servers = response.json()["servers"]
    """

    def __init__(
        self,
        auth: AuthSession,
        http: aiohttp.ClientSession,
        retry: RetryConfig | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        on_retry: RetryCallback | None = None,
        sleep: Sleeper | None = None,
    ):
        """
        Initialize the executor.

        Args:
            auth: Session supplying tokens and the service catalog
            http: aiohttp session (caller manages lifecycle)
            retry: Backoff configuration for transient failures
            timeout: Default total timeout per send in seconds
            on_retry: Callback before each backoff (error, attempt, delay)
            sleep: Delay primitive used between retries
        """
        self.auth = auth
        self.http = http
        self.retry = retry or DEFAULT_RETRY
        self.timeout = timeout
        self.on_retry = on_retry
        self._sleep = sleep or asyncio.sleep

    async def execute(self, request: Request) -> Response:
        """
        Send a request, recovering from token expiry and transient failures.

        Args:
            request: The request to send

        Returns:
            A successful (2xx/3xx) response

        Raises:
            AuthError: If re-authentication fails or the resend gets 401 again
            CatalogError: If the request's service has no matching endpoint
            HttpError: Typed error for a non-success status
            TransportError: If the connection keeps failing
        """
        operation = f"{request.method} {request.service_type or request.url}"
        reauthenticated = False
        attempt = 0  # transient failures so far
        sends = 0
        request_id = uuid.uuid4().hex

        with LogContext(
            request_id=request_id,
            service_type=request.service_type,
            operation=operation,
        ):
            while True:
                token = await self.auth.ensure_valid()
                url = self._build_url(request, token)
                sends += 1

                try:
                    response = await self._send(request, url, token, sends)
                except TransportError as error:
                    if self._should_retry(request, error, attempt, operation):
                        await self._backoff(error, attempt, operation)
                        attempt += 1
                        continue
                    raise

                if response.status == 401:
                    if reauthenticated:
                        logger.error(
                            "Request rejected after re-authentication",
                            extra={"http_method": request.method, "http_url": url, "http_status": 401},
                        )
                        raise AuthError(
                            f"HTTP 401 for {request.method} {url} after re-authentication",
                            context={
                                "status_code": 401,
                                "body": response.text[:200],
                                "attempts": sends,
                            },
                        )
                    logger.info(
                        "Token rejected, forcing re-authentication",
                        extra={"http_method": request.method, "http_url": url, "http_status": 401},
                    )
                    reauthenticated = True
                    await self.auth.force_refresh(stale=token)
                    continue

                if response.ok:
                    if sends > 1:
                        logger.info(
                            "Request succeeded for %s after %d attempts",
                            operation,
                            sends,
                            extra={"operation": operation, "total_attempts": sends},
                        )
                    return response

                error = error_for_status(
                    response.status,
                    response.text,
                    method=request.method,
                    url=url,
                    attempts=sends,
                    retry_after=parse_retry_after(response.header("Retry-After")),
                )
                if self._should_retry(request, error, attempt, operation):
                    await self._backoff(error, attempt, operation)
                    attempt += 1
                    continue
                raise error

    def _build_url(self, request: Request, token: Token) -> str:
        if request.service_type is None:
            return request.resolve_url(None)
        base_url = token.catalog.resolve(
            request.service_type,
            interface=request.interface or self.auth.interface,
            region=request.region if request.region is not None else self.auth.region,
        )
        return request.resolve_url(base_url)

    async def _send(self, request: Request, url: str, token: Token, attempt: int) -> Response:
        headers = {
            "Accept": "application/json",
            **request.headers,
            AUTH_TOKEN_HEADER: token.id,
        }
        timeout = aiohttp.ClientTimeout(total=request.timeout or self.timeout)

        logger.debug(
            "Sending %s %s",
            request.method,
            url,
            extra={"http_method": request.method, "http_url": url, "attempt": attempt},
        )
        try:
            async with self.http.request(
                request.method,
                url,
                params=_encode_params(request.params),
                json=request.json,
                headers=headers,
                timeout=timeout,
            ) as raw:
                body = await raw.read()
                return Response(
                    status=raw.status,
                    headers={k.lower(): v for k, v in raw.headers.items()},
                    body=body,
                    method=request.method,
                    url=url,
                    attempts=attempt,
                )
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Timeout after {timeout.total}s for {request.method} {url}",
                attempts=attempt,
                cause=e,
                context={"error_type": "timeout", "url": url},
            ) from e
        except aiohttp.ClientError as e:
            raise TransportError(
                f"Connection error for {request.method} {url}: {e}",
                attempts=attempt,
                cause=e,
                context={"error_type": "connection", "url": url},
            ) from e

    def _should_retry(
        self,
        request: Request,
        error: HttpError | TransportError,
        attempt: int,
        operation: str,
    ) -> bool:
        repeatable = request.can_repeat
        if repeatable and self.retry.should_retry(error, attempt):
            return True
        log_retry_failure(operation, attempt, self.retry, error, repeatable=repeatable)
        return False

    async def _backoff(self, error: Exception, attempt: int, operation: str) -> None:
        delay = self.retry.get_delay(attempt, error)
        log_retry_attempt(operation, attempt, self.retry, delay, error)
        if self.on_retry:
            safe_invoke_on_retry(self.on_retry, error, attempt, delay, operation)
        await self._sleep(delay)

    # =========================================================================
    # Convenience verbs
    # =========================================================================

    async def request(self, method: str, url: str, **kwargs: Any) -> Response:
        return await self.execute(Request(method, url, **kwargs))

    async def get(self, url: str, **kwargs: Any) -> Response:
        return await self.request("GET", url, **kwargs)

    async def head(self, url: str, **kwargs: Any) -> Response:
        return await self.request("HEAD", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> Response:
        return await self.request("DELETE", url, **kwargs)


def _encode_params(params: dict[str, Any]) -> dict[str, str] | None:
    """aiohttp only accepts str/int/float query values."""
    if not params:
        return None
    encoded = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        else:
            encoded[key] = str(value)
    return encoded


__all__ = [
    "RequestExecutor",
    "AUTH_TOKEN_HEADER",
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
]
