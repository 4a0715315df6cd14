"""
Identity credential value objects.

Credentials are supplied by the caller (the core never reads credential files
or environment variables) and are rendered into the identity-exchange request
body. Secrets are excluded from ``repr`` so they never reach log output.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

DEFAULT_DOMAIN = "Default"


@dataclass(frozen=True)
class ProjectScope:
    """
    Project the token should be scoped to.

    Attributes:
        name: Project name (requires a domain)
        id: Project id (takes precedence over name)
        domain_name: Domain of a project given by name
        domain_id: Domain id of a project given by name
    """

    name: str | None = None
    id: str | None = None
    domain_name: str | None = DEFAULT_DOMAIN
    domain_id: str | None = None

    def __post_init__(self):
        if not self.name and not self.id:
            raise ValueError("ProjectScope requires a project name or id")

    def to_scope(self) -> dict[str, Any]:
        if self.id:
            return {"project": {"id": self.id}}
        return {"project": {"name": self.name, "domain": _domain_ref(self.domain_name, self.domain_id)}}


def _domain_ref(name: str | None, domain_id: str | None) -> dict[str, str]:
    if domain_id:
        return {"id": domain_id}
    return {"name": name or DEFAULT_DOMAIN}


class Credentials(ABC):
    """Base interface for identity material accepted by AuthSession."""

    method: str = ""

    @abstractmethod
    def identity(self) -> dict[str, Any]:
        """Return the ``identity`` section of the exchange body."""

    def scope(self) -> dict[str, Any] | None:
        return None

    def to_identity_body(self) -> dict[str, Any]:
        """Build the full identity-exchange JSON body."""
        auth: dict[str, Any] = {"identity": self.identity()}
        scope = self.scope()
        if scope:
            auth["scope"] = scope
        return {"auth": auth}


@dataclass(frozen=True)
class PasswordCredentials(Credentials):
    """Username/password identity, optionally scoped to a project."""

    username: str
    password: str = field(repr=False)
    user_domain_name: str | None = DEFAULT_DOMAIN
    user_domain_id: str | None = None
    project: ProjectScope | None = None

    method = "password"

    def __post_init__(self):
        if not self.username or not self.password:
            raise ValueError("username and password are required")

    def identity(self) -> dict[str, Any]:
        return {
            "methods": [self.method],
            "password": {
                "user": {
                    "name": self.username,
                    "domain": _domain_ref(self.user_domain_name, self.user_domain_id),
                    "password": self.password,
                }
            },
        }

    def scope(self) -> dict[str, Any] | None:
        return self.project.to_scope() if self.project else None


@dataclass(frozen=True)
class TokenCredentials(Credentials):
    """A pre-existing token exchanged for a (re-)scoped one."""

    token: str = field(repr=False)
    project: ProjectScope | None = None

    method = "token"

    def __post_init__(self):
        if not self.token:
            raise ValueError("token is required")

    def identity(self) -> dict[str, Any]:
        return {"methods": [self.method], "token": {"id": self.token}}

    def scope(self) -> dict[str, Any] | None:
        return self.project.to_scope() if self.project else None


@dataclass(frozen=True)
class ApplicationCredentials(Credentials):
    """Application credential; its scope is fixed server-side."""

    credential_id: str
    secret: str = field(repr=False)

    method = "application_credential"

    def __post_init__(self):
        if not self.credential_id or not self.secret:
            raise ValueError("credential_id and secret are required")

    def identity(self) -> dict[str, Any]:
        return {
            "methods": [self.method],
            "application_credential": {
                "id": self.credential_id,
                "secret": self.secret,
            },
        }


__all__ = [
    "DEFAULT_DOMAIN",
    "ProjectScope",
    "Credentials",
    "PasswordCredentials",
    "TokenCredentials",
    "ApplicationCredentials",
]
