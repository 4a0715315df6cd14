"""Client configuration from YAML file.

Loads an optional YAML file with all client settings in one place:
- Identity endpoint and endpoint selection (region, interface)
- Request timeout and retry/backoff settings
- Token refresh margin
- Waiter and pagination defaults
- Connection pool sizes

Environment variables ARE supported using ${VAR_NAME} and
${VAR_NAME:-default} syntax in YAML files. Credentials are never read from
the file; callers build them explicitly.
"""

import logging
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from osclient.auth.session import DEFAULT_REFRESH_MARGIN_SECONDS
from osclient.http.executor import DEFAULT_REQUEST_TIMEOUT_SECONDS
from osclient.resilience.retry import RetryConfig
from osclient.types import Interface
from osclient.waiter.waiter import (
    DEFAULT_MAX_INTERVAL_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_WAIT_TIMEOUT_SECONDS,
    BackoffPolicy,
)

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r"\$\{([^}:]+)(?::-([^}]*))?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


def _as_optional_float(value: Any) -> float | None:
    if value is None or (isinstance(value, str) and value.strip().lower() in ("", "none", "null")):
        return None
    return float(value)


@dataclass
class ClientConfig:
    """Client core configuration.

    Configuration structure:
        osclient:
          auth_url: https://identity.example.com/v3
          region: RegionOne
          interface: public
          request_timeout: 60
          refresh_margin: 300
          retry: {max_attempts, base_delay, max_delay, exponential_base, respect_retry_after}
          wait_interval: 1
          wait_timeout: 600          # null waits forever
          wait_backoff: false
          wait_max_interval: 30
          page_limit: null
          max_connections: 100
          max_connections_per_host: 10

    All timing values in seconds.
    """

    # =========================================================================
    # IDENTITY & ENDPOINT SELECTION
    # =========================================================================
    auth_url: str = ""
    region: str | None = None
    interface: Interface | str = Interface.PUBLIC

    # =========================================================================
    # REQUESTS
    # =========================================================================
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    connect_timeout: float = 30.0
    refresh_margin: float = DEFAULT_REFRESH_MARGIN_SECONDS
    retry: RetryConfig = field(default_factory=RetryConfig)

    # =========================================================================
    # WAITER & PAGINATION DEFAULTS
    # =========================================================================
    wait_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    wait_timeout: float | None = DEFAULT_WAIT_TIMEOUT_SECONDS
    wait_backoff: bool = False
    wait_max_interval: float = DEFAULT_MAX_INTERVAL_SECONDS
    page_limit: int | None = None

    # =========================================================================
    # CONNECTION POOL
    # =========================================================================
    max_connections: int = 100
    max_connections_per_host: int = 10

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.auth_url = str(self.auth_url or "")
        self.region = str(self.region) if self.region not in (None, "") else None
        self.interface = Interface.parse(self.interface)
        self.request_timeout = float(self.request_timeout)
        self.connect_timeout = float(self.connect_timeout)
        self.refresh_margin = float(self.refresh_margin)
        if isinstance(self.retry, dict):
            self.retry = RetryConfig(**self.retry)
        self.wait_interval = float(self.wait_interval)
        self.wait_timeout = _as_optional_float(self.wait_timeout)
        self.wait_backoff = _as_bool(self.wait_backoff)
        self.wait_max_interval = float(self.wait_max_interval)
        self.page_limit = int(self.page_limit) if self.page_limit not in (None, "") else None
        self.max_connections = int(self.max_connections)
        self.max_connections_per_host = int(self.max_connections_per_host)

    @property
    def backoff(self) -> BackoffPolicy | None:
        """Waiter backoff policy, or None when polling at a fixed interval."""
        if not self.wait_backoff:
            return None
        return BackoffPolicy(max_interval=self.wait_max_interval)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClientConfig":
        """Build from a plain dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {unknown}")
        return cls(**{key: value for key, value in data.items() if key in known})

    def validate(self) -> None:
        """Validate configuration for correctness and constraints."""
        if not self.auth_url:
            raise ValueError("auth_url is required in osclient section")
        self._validate_min("request_timeout", self.request_timeout, 0, inclusive=False)
        self._validate_min("connect_timeout", self.connect_timeout, 0, inclusive=False)
        self._validate_min("refresh_margin", self.refresh_margin, 0, inclusive=True)
        self._validate_min("wait_interval", self.wait_interval, 0, inclusive=True)
        if self.wait_timeout is not None:
            self._validate_min("wait_timeout", self.wait_timeout, 0, inclusive=False)
        self._validate_min("wait_max_interval", self.wait_max_interval, 0, inclusive=False)
        if self.page_limit is not None:
            self._validate_min("page_limit", self.page_limit, 1, inclusive=True)
        self._validate_min("max_connections", self.max_connections, 1, inclusive=True)
        self._validate_min("max_connections_per_host", self.max_connections_per_host, 1, inclusive=True)

    @staticmethod
    def _validate_min(key: str, value: float, min_value: float, inclusive: bool) -> None:
        """Validate that a setting's value meets a minimum threshold."""
        if inclusive and value < min_value:
            raise ValueError(f"{key} must be >= {min_value}, got {value}")
        elif not inclusive and value <= min_value:
            raise ValueError(f"{key} must be > {min_value}, got {value}")


def load_config(
    config_path: Path | str | None = None,
    overrides: dict[str, Any] | None = None,
) -> ClientConfig:
    """Load client configuration from a YAML file.

    A missing file yields the defaults. Settings may live under a top-level
    ``osclient:`` section or at the root of the document.

    Environment variables ARE supported using ${VAR_NAME} syntax in YAML files.
    """
    data: dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            logger.info(f"Loading configuration from file: {path}")
            data = _expand_env_vars(load_yaml(path))
        else:
            logger.debug(f"Configuration file not found, using defaults: {path}")

    section = data.get("osclient", data)
    if not isinstance(section, dict):
        raise ValueError("Invalid config file: 'osclient' section must be a mapping")

    if overrides:
        logger.debug(f"Applying overrides: {list(overrides.keys())}")
        section = {**section, **overrides}

    return ClientConfig.from_dict(section)


__all__ = ["ClientConfig", "load_config", "load_yaml"]
