"""Request and response values exchanged with the request executor."""

import json
from dataclasses import dataclass, field, replace
from typing import Any

from osclient.resilience.retry import can_repeat
from osclient.types import Interface


@dataclass(frozen=True)
class Request:
    """
    One HTTP call, built by a caller and consumed once by the executor.

    Attributes:
        method: HTTP verb
        url: Absolute URL, or a path relative to the catalog endpoint of
            ``service_type``
        service_type: Catalog service type used to resolve the base URL
        interface: Endpoint interface override for this request
        region: Endpoint region override for this request
        params: Query parameters
        headers: Extra request headers
        json: JSON-serializable body
        retry_safe: Mark a non-idempotent request safe to repeat (None = infer
            from the method)
        timeout: Per-request total timeout in seconds
    """

    method: str
    url: str
    service_type: str | None = None
    interface: Interface | str | None = None
    region: str | None = None
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    json: Any = None
    retry_safe: bool | None = None
    timeout: float | None = None

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "params", dict(self.params))
        object.__setattr__(self, "headers", dict(self.headers))

    @property
    def can_repeat(self) -> bool:
        """Whether a transient failure may be retried for this request."""
        return can_repeat(self.method, self.retry_safe)

    def with_params(self, **params: Any) -> "Request":
        """Return a copy with ``params`` merged over the existing query."""
        merged = {**self.params, **params}
        return replace(self, params={k: v for k, v in merged.items() if v is not None})

    def resolve_url(self, base_url: str | None) -> str:
        """Join the request path onto a catalog base URL."""
        if base_url is None or self.url.startswith(("http://", "https://")):
            return self.url
        if not self.url:
            return base_url
        return f"{base_url.rstrip('/')}/{self.url.lstrip('/')}"


@dataclass(frozen=True)
class Response:
    """
    Fully-read HTTP response.

    Attributes:
        status: HTTP status code
        headers: Response headers with lower-cased names
        body: Raw response body
        method: Method of the request that produced it
        url: URL the request was sent to
        attempts: Number of sends it took to get this response
    """

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    method: str = "GET"
    url: str = ""
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 400

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)

    def json(self) -> Any:
        """Decode the body into a generic structured value (None if empty)."""
        if not self.body:
            return None
        return json.loads(self.body)


__all__ = ["Request", "Response"]
