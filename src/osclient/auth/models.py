"""Token and service catalog models."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from types import MappingProxyType
from typing import Any

from osclient.errors.exceptions import CatalogError
from osclient.types import Interface


@dataclass(frozen=True)
class Endpoint:
    """
    One catalog endpoint.

    Attributes:
        url: Base URL of the service
        interface: Network exposure class
        region: Region identifier (None when the catalog omits it)
    """

    url: str
    interface: Interface
    region: str | None = None

    @classmethod
    def from_catalog_entry(cls, entry: Mapping[str, Any]) -> "Endpoint":
        return cls(
            url=entry["url"],
            interface=Interface.parse(entry.get("interface", Interface.PUBLIC)),
            region=entry.get("region_id") or entry.get("region"),
        )


class ServiceCatalog:
    """
    Immutable mapping from service type to its endpoints.

    Built wholesale from one identity response; a re-authentication produces
    a new catalog rather than mutating this one.
    """

    def __init__(self, services: Mapping[str, Iterable[Endpoint]] | None = None):
        self._services: Mapping[str, tuple[Endpoint, ...]] = MappingProxyType(
            {name: tuple(endpoints) for name, endpoints in (services or {}).items()}
        )

    @classmethod
    def from_response(cls, catalog: Iterable[Mapping[str, Any]]) -> "ServiceCatalog":
        """
        Parse the ``catalog`` array of an identity response.

        Entries of the same service type are concatenated in response order.
        """
        services: dict[str, list[Endpoint]] = {}
        for service in catalog:
            endpoints = services.setdefault(service["type"], [])
            endpoints.extend(
                Endpoint.from_catalog_entry(entry)
                for entry in service.get("endpoints", [])
            )
        return cls(services)

    @property
    def service_types(self) -> list[str]:
        return sorted(self._services)

    def endpoints(self, service_type: str) -> tuple[Endpoint, ...]:
        return self._services.get(service_type, ())

    def resolve(
        self,
        service_type: str,
        interface: Interface | str = Interface.PUBLIC,
        region: str | None = None,
    ) -> str:
        """
        Find the base URL for a service.

        Args:
            service_type: Catalog service type (e.g., "compute")
            interface: Endpoint interface to match
            region: Region to match; None accepts the first matching endpoint

        Returns:
            Endpoint URL

        Raises:
            CatalogError: If the service, interface or region has no entry
        """
        interface = Interface.parse(interface)
        endpoints = self._services.get(service_type)
        if not endpoints:
            raise CatalogError(
                f"Service '{service_type}' not found in catalog. "
                f"Available: {self.service_types}",
                service_type=service_type,
                interface=interface.value,
                region=region,
            )

        for endpoint in endpoints:
            if endpoint.interface != interface:
                continue
            if region is not None and endpoint.region != region:
                continue
            return endpoint.url

        raise CatalogError(
            f"No {interface.value} endpoint for service '{service_type}'"
            + (f" in region '{region}'" if region else ""),
            service_type=service_type,
            interface=interface.value,
            region=region,
        )

    def __contains__(self, service_type: object) -> bool:
        return service_type in self._services

    def __len__(self) -> int:
        return len(self._services)

    def __repr__(self) -> str:
        return f"ServiceCatalog(services={self.service_types})"


@dataclass(frozen=True)
class Token:
    """
    Authentication token with its catalog generation.

    Attributes:
        id: Token identifier sent as X-Auth-Token
        expires_at: UTC timestamp when the token expires
        catalog: Service catalog returned with this token
        issued_at: UTC timestamp when the token was issued
    """

    id: str = field(repr=False)
    expires_at: datetime
    catalog: ServiceCatalog = field(default_factory=ServiceCatalog)
    issued_at: datetime | None = None

    def __post_init__(self):
        if self.expires_at.tzinfo is None:
            raise ValueError("Token expiry must be timezone-aware")

    def is_expired(self, margin_seconds: float = 0.0) -> bool:
        """
        Check if token is expired or within margin of expiry.

        Args:
            margin_seconds: Safety buffer before actual expiry

        Returns:
            True if token should be refreshed
        """
        return datetime.now(UTC) >= self.expires_at - timedelta(seconds=margin_seconds)

    @property
    def remaining_lifetime(self) -> timedelta:
        """Get remaining time before token expires."""
        return self.expires_at - datetime.now(UTC)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp from the identity service as UTC."""
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


__all__ = ["Endpoint", "ServiceCatalog", "Token", "parse_timestamp"]
