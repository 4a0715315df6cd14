"""Identity exchange against the identity service."""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

import aiohttp

from osclient.auth.credentials import Credentials
from osclient.auth.models import ServiceCatalog, Token, parse_timestamp
from osclient.errors.exceptions import AuthError

logger = logging.getLogger(__name__)

SUBJECT_TOKEN_HEADER = "X-Subject-Token"
DEFAULT_IDENTITY_TIMEOUT_SECONDS = 30.0


class IdentityProvider:
    """
    Performs the identity exchange and parses the issued token.

    Sends ``POST {auth_url}/auth/tokens`` with the credential body. The token
    id comes back in the ``X-Subject-Token`` header; expiry and service
    catalog come back in the JSON body.
    """

    def __init__(
        self,
        auth_url: str,
        session: aiohttp.ClientSession | None = None,
        timeout: float = DEFAULT_IDENTITY_TIMEOUT_SECONDS,
    ):
        if not auth_url:
            raise ValueError("auth_url is required")
        self.auth_url = auth_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

        logger.debug("Initialized identity provider", extra={"http_url": self.tokens_url})

    @property
    def tokens_url(self) -> str:
        if self.auth_url.endswith("/auth/tokens"):
            return self.auth_url
        return f"{self.auth_url}/auth/tokens"

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP client session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def authenticate(self, credentials: Credentials) -> Token:
        """
        Exchange credentials for a token and its service catalog.

        Args:
            credentials: Identity material to exchange

        Returns:
            Token carrying its catalog

        Raises:
            AuthError: If credentials are rejected, the response is malformed,
                or the transport fails
        """
        session = await self._ensure_session()
        body = credentials.to_identity_body()

        try:
            async with session.post(
                self.tokens_url,
                json=body,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status in (401, 403):
                    text = await response.text()
                    raise AuthError(
                        f"Credentials rejected by identity service: HTTP {response.status}",
                        context={"status_code": response.status, "body": text[:200]},
                    )
                if response.status >= 300:
                    text = await response.text()
                    raise AuthError(
                        f"Identity exchange failed: HTTP {response.status}",
                        context={"status_code": response.status, "body": text[:200]},
                    )

                token_id = response.headers.get(SUBJECT_TOKEN_HEADER)
                payload = await response.json(content_type=None)

        except AuthError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(
                "Transport error during identity exchange: %s",
                e,
                extra={"http_url": self.tokens_url, "error_type": type(e).__name__},
            )
            raise AuthError(f"Identity exchange transport failure: {e}", cause=e) from e
        except ValueError as e:
            raise AuthError(f"Identity response is not valid JSON: {e}", cause=e) from e

        token = self.parse_token(token_id, payload)
        logger.debug(
            "Acquired token via %s",
            credentials.method,
            extra={"services": len(token.catalog)},
        )
        return token

    @staticmethod
    def parse_token(token_id: str | None, payload: Any) -> Token:
        """
        Build a Token from the subject-token header and response body.

        Raises:
            AuthError: If the token id, expiry or catalog is missing or invalid
        """
        if not token_id:
            raise AuthError(f"Identity response lacks the {SUBJECT_TOKEN_HEADER} header")
        if not isinstance(payload, dict) or not isinstance(payload.get("token"), dict):
            raise AuthError("Identity response body has no 'token' object")

        data = payload["token"]
        expires_at = data.get("expires_at")
        if not expires_at:
            raise AuthError("Identity response token has no expiry")

        try:
            catalog = ServiceCatalog.from_response(data.get("catalog") or [])
            return Token(
                id=token_id,
                expires_at=parse_timestamp(expires_at),
                catalog=catalog,
                issued_at=(
                    parse_timestamp(data["issued_at"])
                    if data.get("issued_at")
                    else datetime.now(UTC)
                ),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise AuthError(f"Malformed identity response: {e}", cause=e) from e

    async def close(self) -> None:
        """Close HTTP client session if this provider created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            await asyncio.sleep(0)


__all__ = [
    "IdentityProvider",
    "SUBJECT_TOKEN_HEADER",
    "DEFAULT_IDENTITY_TIMEOUT_SECONDS",
]
