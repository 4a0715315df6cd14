"""
pytest configuration for client core tests.

Adds src directory to Python path for imports and provides fakes for the
identity service and the aiohttp session.
"""

import asyncio
import json
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from osclient.auth.credentials import PasswordCredentials  # noqa: E402
from osclient.auth.models import ServiceCatalog, Token  # noqa: E402
from osclient.auth.session import AuthSession  # noqa: E402

COMPUTE_URL = "https://compute.example.com/v2.1"
COMPUTE_INTERNAL_URL = "http://compute.internal:8774/v2.1"
COMPUTE_REGION_TWO_URL = "https://compute.r2.example.com/v2.1"
IMAGE_URL = "https://image.example.com"

CATALOG_BODY = [
    {
        "type": "compute",
        "name": "nova",
        "endpoints": [
            {"url": COMPUTE_URL, "interface": "public", "region_id": "RegionOne"},
            {"url": COMPUTE_INTERNAL_URL, "interface": "internal", "region_id": "RegionOne"},
            {"url": COMPUTE_REGION_TWO_URL, "interface": "public", "region_id": "RegionTwo"},
        ],
    },
    {
        "type": "image",
        "name": "glance",
        "endpoints": [
            {"url": IMAGE_URL, "interface": "public", "region": "RegionOne"},
        ],
    },
]


def build_token(token_id: str = "tok-1", expires_in: float = 3600.0) -> Token:
    now = datetime.now(UTC)
    return Token(
        id=token_id,
        expires_at=now + timedelta(seconds=expires_in),
        catalog=ServiceCatalog.from_response(CATALOG_BODY),
        issued_at=now,
    )


class FakeIdentity:
    """Stands in for IdentityProvider; issues tok-1, tok-2, ... in order."""

    def __init__(self, tokens=None, error=None, gate: asyncio.Event | None = None):
        self.calls = 0
        self.credentials = []
        self.tokens = list(tokens or [])
        self.error = error
        self.gate = gate
        self.closed = False

    async def authenticate(self, credentials):
        self.calls += 1
        self.credentials.append(credentials)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.tokens:
            return self.tokens.pop(0)
        return build_token(f"tok-{self.calls}")

    async def close(self):
        self.closed = True


def make_http_response(status: int = 200, body=None, headers: dict | None = None):
    """aiohttp-style response usable as an async context manager."""
    if body is None:
        payload = b""
    elif isinstance(body, bytes):
        payload = body
    else:
        payload = json.dumps(body).encode()

    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.headers = headers or {}
    mock_response.read = AsyncMock(return_value=payload)
    mock_response.text = AsyncMock(return_value=payload.decode())
    try:
        parsed = json.loads(payload) if payload else None
    except ValueError:
        parsed = None
    mock_response.json = AsyncMock(return_value=parsed)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)
    return mock_response


def make_http_session(*responses):
    """Session whose ``request`` returns (or raises) ``responses`` in order."""
    mock_session = MagicMock()
    mock_session.closed = False
    mock_session.request = MagicMock(side_effect=list(responses))
    return mock_session


@pytest.fixture
def credentials():
    return PasswordCredentials("demo", "secret")


@pytest.fixture
def identity_factory():
    return FakeIdentity


@pytest.fixture
def fake_identity():
    return FakeIdentity()


@pytest.fixture
def auth_session(fake_identity, credentials):
    return AuthSession(fake_identity, credentials=credentials)


@pytest.fixture
def token_factory():
    return build_token


@pytest.fixture
def response_factory():
    return make_http_response


@pytest.fixture
def session_factory():
    return make_http_session


@pytest.fixture
def recorded_sleep():
    """Async sleep replacement that records requested delays."""
    delays = []

    async def sleep(delay):
        delays.append(delay)

    sleep.delays = delays
    return sleep
