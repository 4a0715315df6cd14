"""
Connection facade wiring authentication, requests, pagination and waiting.

Usage:
    config = load_config("osclient.yaml")
    async with Connection(config, PasswordCredentials("demo", "secret")) as conn:
        response = await conn.get("compute", "/servers/detail")
        async for server in conn.paginate(
            Request("GET", "/servers", service_type="compute"),
            links_page_parser("servers"),
        ):
            ...
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

import aiohttp

from osclient.auth.credentials import Credentials
from osclient.auth.identity import IdentityProvider
from osclient.auth.models import Token
from osclient.auth.session import AuthSession
from osclient.config import ClientConfig
from osclient.http.executor import RequestExecutor
from osclient.http.models import Request, Response
from osclient.http.session import create_session
from osclient.pagination.paginator import PageParser, Paginator
from osclient.resilience.retry import RetryCallback
from osclient.waiter.waiter import Probe, default_state_of, wait_for, wait_for_deletion

logger = logging.getLogger(__name__)

_UNSET = object()


class Connection:
    """Owns one AuthSession, one aiohttp session and one RequestExecutor."""

    def __init__(
        self,
        config: ClientConfig,
        credentials: Credentials,
        http: aiohttp.ClientSession | None = None,
        on_retry: RetryCallback | None = None,
    ):
        config.validate()
        self.config = config
        self._owns_http = http is None
        self.http = http or create_session(
            max_connections=config.max_connections,
            max_connections_per_host=config.max_connections_per_host,
            timeout_total=config.request_timeout,
            timeout_connect=config.connect_timeout,
            timeout_sock_read=config.request_timeout,
        )
        self.identity = IdentityProvider(
            config.auth_url,
            session=self.http,
            timeout=config.request_timeout,
        )
        self.auth = AuthSession(
            self.identity,
            credentials=credentials,
            refresh_margin=config.refresh_margin,
            interface=config.interface,
            region=config.region,
        )
        self.executor = RequestExecutor(
            self.auth,
            self.http,
            retry=config.retry,
            timeout=config.request_timeout,
            on_retry=on_retry,
        )

    async def authenticate(self) -> Token:
        return await self.auth.authenticate()

    def endpoint(self, service_type: str, interface: str | None = None, region: str | None = None) -> str:
        return self.auth.resolve_endpoint(service_type, interface=interface, region=region)

    # =========================================================================
    # Requests
    # =========================================================================

    async def execute(self, request: Request) -> Response:
        return await self.executor.execute(request)

    async def request(self, method: str, service_type: str, path: str, **kwargs: Any) -> Response:
        return await self.executor.request(method, path, service_type=service_type, **kwargs)

    async def get(self, service_type: str, path: str, **kwargs: Any) -> Response:
        return await self.request("GET", service_type, path, **kwargs)

    async def post(self, service_type: str, path: str, **kwargs: Any) -> Response:
        return await self.request("POST", service_type, path, **kwargs)

    async def put(self, service_type: str, path: str, **kwargs: Any) -> Response:
        return await self.request("PUT", service_type, path, **kwargs)

    async def patch(self, service_type: str, path: str, **kwargs: Any) -> Response:
        return await self.request("PATCH", service_type, path, **kwargs)

    async def delete(self, service_type: str, path: str, **kwargs: Any) -> Response:
        return await self.request("DELETE", service_type, path, **kwargs)

    def paginate(
        self,
        request: Request,
        parse_page: PageParser,
        limit: int | None = None,
        **kwargs: Any,
    ) -> Paginator:
        """Paginator over ``request`` using the configured page size by default."""
        return Paginator(
            self.executor,
            request,
            parse_page,
            limit=limit if limit is not None else self.config.page_limit,
            **kwargs,
        )

    # =========================================================================
    # Waiting
    # =========================================================================

    async def wait_for(
        self,
        probe: Probe,
        target_states: Iterable[Any],
        failure_states: Iterable[Any] = (),
        interval: float | None = None,
        timeout: Any = _UNSET,
        cancel: asyncio.Event | None = None,
        state_of: Callable[[Any], Any] = default_state_of,
        description: str = "entity",
    ) -> Any:
        """Wait using the configured interval, timeout and backoff unless overridden."""
        return await wait_for(
            probe,
            target_states,
            failure_states,
            interval=self.config.wait_interval if interval is None else interval,
            timeout=self.config.wait_timeout if timeout is _UNSET else timeout,
            cancel=cancel,
            backoff=self.config.backoff,
            state_of=state_of,
            description=description,
        )

    async def wait_for_deletion(
        self,
        probe: Probe,
        interval: float | None = None,
        timeout: Any = _UNSET,
        cancel: asyncio.Event | None = None,
        description: str = "entity",
    ) -> None:
        await wait_for_deletion(
            probe,
            interval=self.config.wait_interval if interval is None else interval,
            timeout=self.config.wait_timeout if timeout is _UNSET else timeout,
            cancel=cancel,
            description=description,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self) -> None:
        await self.auth.close()
        if self._owns_http and not self.http.closed:
            await self.http.close()
            logger.debug("Closed HTTP session")

    async def __aenter__(self) -> "Connection":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["Connection"]
