"""
Configuration for the ZEFIX API client.

Centralizes constants and the small value objects a client is built from.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

import requests

from zefix_exceptions import ZefixValidationError


class APIConfig:
    """API configuration constants."""

    BASE_URL = "https://www.zefix.admin.ch/ZefixPublicREST"
    API_PREFIX = "/api/v1"
    TIMEOUT_SECONDS = 10
    USER_AGENT = "ZEFIX-Client/1.0"

    # Pagination for company search (offset/maxEntries)
    SEARCH_PAGE_SIZE = 20
    MAX_SEARCH_PAGE_SIZE = 500

    # Environment variables read by ClientConfig.from_env
    ENV_USERNAME = "ZEFIX_USERNAME"
    ENV_PASSWORD = "ZEFIX_PASSWORD"
    ENV_BASE_URL = "ZEFIX_BASE_URL"
    ENV_MIN_INTERVAL_MS = "ZEFIX_MIN_INTERVAL_MS"


@dataclass(frozen=True)
class ZefixAuth:
    """Basic-Auth credentials. Replaced as a whole, never field by field."""

    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)

    @property
    def is_complete(self) -> bool:
        return bool(self.username) and bool(self.password)


@dataclass(frozen=True)
class ThrottleConfig:
    """Minimum spacing between requests issued through one client."""

    min_interval_ms: Optional[int] = None

    def __post_init__(self):
        if self.min_interval_ms is not None and self.min_interval_ms < 0:
            raise ZefixValidationError(
                f"min_interval_ms must be non-negative, got {self.min_interval_ms}"
            )

    @property
    def enabled(self) -> bool:
        return bool(self.min_interval_ms) and self.min_interval_ms > 0


@dataclass
class ClientConfig:
    """
    Everything a ZefixApiClient is configured with.

    Attributes:
        base_url: API root, defaults to APIConfig.BASE_URL
        auth: Optional Basic-Auth credentials
        throttle: Optional minimum request interval
        transport: Optional requests.Session used to send requests
    """

    base_url: Optional[str] = None
    auth: Optional[ZefixAuth] = None
    throttle: Optional[ThrottleConfig] = None
    transport: Optional[requests.Session] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """
        Build a configuration from ZEFIX_* environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            ClientConfig with auth/throttle set only when the variables are present

        Raises:
            ZefixValidationError: If ZEFIX_MIN_INTERVAL_MS is not a non-negative integer
        """
        environ = os.environ if environ is None else environ

        username = environ.get(APIConfig.ENV_USERNAME)
        password = environ.get(APIConfig.ENV_PASSWORD)
        auth = ZefixAuth(username, password) if username or password else None

        throttle = None
        raw_interval = environ.get(APIConfig.ENV_MIN_INTERVAL_MS)
        if raw_interval:
            try:
                throttle = ThrottleConfig(int(raw_interval))
            except ValueError:
                raise ZefixValidationError(
                    f"{APIConfig.ENV_MIN_INTERVAL_MS} must be an integer, got '{raw_interval}'"
                )

        return cls(
            base_url=environ.get(APIConfig.ENV_BASE_URL) or None,
            auth=auth,
            throttle=throttle,
        )
