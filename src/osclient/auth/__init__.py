"""
Authentication and service catalog management.

Basic Usage:
    from osclient.auth import AuthSession, IdentityProvider, PasswordCredentials

    identity = IdentityProvider("https://identity.example.com/v3")
    session = AuthSession(identity)
    await session.authenticate(PasswordCredentials("demo", "secret"))

    # Token is refreshed automatically when it nears expiry
    token = await session.ensure_valid()
    compute_url = session.resolve_endpoint("compute", region="RegionOne")
"""

from osclient.auth.credentials import (
    ApplicationCredentials,
    Credentials,
    PasswordCredentials,
    ProjectScope,
    TokenCredentials,
)
from osclient.auth.identity import SUBJECT_TOKEN_HEADER, IdentityProvider
from osclient.auth.models import Endpoint, ServiceCatalog, Token
from osclient.auth.session import DEFAULT_REFRESH_MARGIN_SECONDS, AuthSession

__all__ = [
    # Session
    "AuthSession",
    "DEFAULT_REFRESH_MARGIN_SECONDS",
    # Identity exchange
    "IdentityProvider",
    "SUBJECT_TOKEN_HEADER",
    # Models
    "Token",
    "ServiceCatalog",
    "Endpoint",
    # Credentials
    "Credentials",
    "PasswordCredentials",
    "TokenCredentials",
    "ApplicationCredentials",
    "ProjectScope",
]
