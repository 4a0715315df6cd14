"""Authenticated session with single-flight token refresh."""

import asyncio
import logging
import threading
from typing import Any

from osclient.auth.credentials import Credentials
from osclient.auth.identity import IdentityProvider
from osclient.auth.models import Token
from osclient.errors.exceptions import AuthError, CatalogError
from osclient.types import Interface

logger = logging.getLogger(__name__)

# Default token refresh margin (5 minutes before expiry)
DEFAULT_REFRESH_MARGIN_SECONDS = 300.0


class AuthSession:
    """
    Holds the current token and service catalog and refreshes them on expiry.

    The token carries its own catalog, so replacing the token reference swaps
    both together; readers always see one consistent generation.

    Refreshes are single-flight: the first caller that finds the token stale
    starts one identity exchange and every concurrent caller awaits that same
    exchange, observing the same token or the same failure.

    Usage:
        identity = IdentityProvider("https://identity.example.com/v3")
        session = AuthSession(identity)
        await session.authenticate(PasswordCredentials("demo", "secret"))

        token = await session.ensure_valid()
        url = session.resolve_endpoint("compute")
        headers = {"X-Auth-Token": token.id}
    """

    def __init__(
        self,
        identity: IdentityProvider,
        credentials: Credentials | None = None,
        refresh_margin: float = DEFAULT_REFRESH_MARGIN_SECONDS,
        interface: Interface | str = Interface.PUBLIC,
        region: str | None = None,
    ):
        """
        Initialize the session.

        Args:
            identity: Provider performing the identity exchange
            credentials: Credentials reused for re-authentication
            refresh_margin: Seconds before expiry at which a token is stale
            interface: Default interface for endpoint resolution
            region: Default region for endpoint resolution
        """
        self._identity = identity
        self._credentials = credentials
        self.refresh_margin = float(refresh_margin)
        self.interface = Interface.parse(interface)
        self.region = region

        self._token: Token | None = None
        self._lock = threading.Lock()
        self._inflight: asyncio.Task | None = None
        self._inflight_credentials: Credentials | None = None
        self.auth_count = 0

        logger.debug(
            f"Initialized AuthSession with {self.refresh_margin}s refresh margin"
        )

    # =========================================================================
    # Token access
    # =========================================================================

    async def authenticate(self, credentials: Credentials | None = None) -> Token:
        """
        Perform the identity exchange and install the resulting token.

        Args:
            credentials: New credentials; remembered for re-authentication.
                When omitted, the stored credentials are used.

        Returns:
            The newly issued token

        Raises:
            AuthError: On rejected credentials or transport failure
        """
        if credentials is not None:
            self._credentials = credentials
        return await self._refresh(credentials)

    async def ensure_valid(self, margin: float | None = None) -> Token:
        """
        Return a token valid for at least ``margin`` more seconds.

        Performs one (shared) re-authentication when the current token is
        missing or stale.

        Raises:
            AuthError: If re-authentication fails
        """
        margin = self.refresh_margin if margin is None else margin
        token = self._snapshot()
        if token is not None and not token.is_expired(margin):
            return token
        if token is not None:
            logger.info(
                "Token is within refresh margin, re-authenticating",
                extra={"remaining_seconds": token.remaining_lifetime.total_seconds()},
            )
        return await self._refresh()

    async def force_refresh(self, stale: Token | None = None) -> Token:
        """
        Re-authenticate regardless of the expiry margin.

        Args:
            stale: The token that was rejected. If the live token is already
                a different generation, it is returned without a new exchange.

        Raises:
            AuthError: If re-authentication fails
        """
        if stale is not None:
            current = self._snapshot()
            if current is not None and current is not stale and not current.is_expired():
                logger.debug("Token already replaced by a concurrent refresh")
                return current
        return await self._refresh()

    def invalidate(self) -> None:
        """Drop the current token; the next ensure_valid re-authenticates."""
        with self._lock:
            self._token = None
        logger.debug("Invalidated current token")

    def resolve_endpoint(
        self,
        service_type: str,
        interface: Interface | str | None = None,
        region: str | None = None,
    ) -> str:
        """
        Look up a service base URL in the current catalog.

        Raises:
            CatalogError: If no catalog is held or no entry matches
        """
        token = self._snapshot()
        if token is None:
            raise CatalogError(
                "No service catalog available, authenticate first",
                service_type=service_type,
            )
        return token.catalog.resolve(
            service_type,
            interface=interface or self.interface,
            region=region if region is not None else self.region,
        )

    @property
    def is_authenticated(self) -> bool:
        token = self._snapshot()
        return token is not None and not token.is_expired()

    def get_token_info(self) -> dict[str, Any] | None:
        """
        Get information about the current token for diagnostics.

        Returns:
            Dict with token info, or None if no token is held
        """
        token = self._snapshot()
        if token is None:
            return None
        return {
            "expires_at": token.expires_at.isoformat(),
            "remaining_seconds": token.remaining_lifetime.total_seconds(),
            "is_expired": token.is_expired(self.refresh_margin),
            "services": token.catalog.service_types,
            "auth_count": self.auth_count,
        }

    # =========================================================================
    # Single-flight refresh
    # =========================================================================

    def _snapshot(self) -> Token | None:
        with self._lock:
            return self._token

    async def _refresh(self, credentials: Credentials | None = None) -> Token:
        while True:
            task = self._inflight
            if task is None or task.done():
                break
            if credentials is None or credentials == self._inflight_credentials:
                logger.debug("Joining in-flight re-authentication")
                # Shielded so a cancelled waiter does not abort the shared exchange
                return await asyncio.shield(task)
            # The running exchange is for other credentials; let it settle first
            logger.debug("Waiting for in-flight re-authentication with other credentials")
            await asyncio.wait({task})

        credentials = credentials if credentials is not None else self._credentials
        task = asyncio.get_running_loop().create_task(self._exchange(credentials))
        task.add_done_callback(self._clear_inflight)
        self._inflight = task
        self._inflight_credentials = credentials
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
            self._inflight_credentials = None
        if not task.cancelled():
            # Mark the exception retrieved even if every waiter went away
            task.exception()

    async def _exchange(self, credentials: Credentials | None) -> Token:
        if credentials is None:
            raise AuthError("No credentials available for authentication")

        self.auth_count += 1
        try:
            token = await self._identity.authenticate(credentials)
        except AuthError as e:
            logger.error(f"Authentication failed: {e}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error during authentication: {e}")
            raise AuthError(f"Authentication failed: {e}", cause=e) from e

        with self._lock:
            self._token = token

        logger.info(
            f"Authenticated, token valid until {token.expires_at.isoformat()}",
            extra={"services": len(token.catalog)},
        )
        return token

    async def close(self) -> None:
        """Cancel any in-flight exchange and release identity resources."""
        task = self._inflight
        if task is not None and not task.done():
            task.cancel()
        await self._identity.close()
        with self._lock:
            self._token = None
        logger.info("AuthSession closed")


__all__ = ["AuthSession", "DEFAULT_REFRESH_MARGIN_SECONDS"]
