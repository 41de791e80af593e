"""Connection settings and paging cursors for the bitFlyer REST API."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Tuple
from urllib.parse import urlsplit

from .errors import CallerUsageError, ConfigurationError

DEFAULT_BASE_URL = "https://api.bitflyer.jp"
DEFAULT_API_VERSION = "v1"
DEFAULT_TIMEOUT = 10.0

_VERSION_SEGMENT = re.compile(r"[A-Za-z0-9._-]+")


@dataclass(frozen=True)
class ClientConfig:
    """Connection details for the exchange.

    Attributes:
        base_url: Scheme and host of the REST API, optionally with a path prefix.
        api_version: Version segment placed between the base path and every endpoint.
        api_key: Key identifier sent in ``ACCESS-KEY``. Empty disables signing.
        api_secret: HMAC secret. Empty disables signing.
        timeout: Default per-request timeout in seconds.
    """

    base_url: str = DEFAULT_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    api_key: str = ""
    api_secret: str = ""
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        parts = urlsplit(self.base_url)
        if parts.scheme not in {"http", "https"} or not parts.netloc:
            raise ConfigurationError(f"base_url must be an absolute http(s) URL, got {self.base_url!r}")
        if parts.query or parts.fragment:
            raise ConfigurationError("base_url must not carry a query string or fragment")
        version = self.api_version.strip("/")
        if not _VERSION_SEGMENT.fullmatch(version) or version in {".", ".."}:
            raise ConfigurationError(f"api_version must be a single path segment, got {self.api_version!r}")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key) and bool(self.api_secret)

    def __repr__(self) -> str:
        secret = "***" if self.api_secret else ""
        return (
            f"ClientConfig(base_url={self.base_url!r}, api_version={self.api_version!r}, "
            f"api_key={self.api_key!r}, api_secret={secret!r}, timeout={self.timeout!r})"
        )


@dataclass(frozen=True)
class PagingParams:
    """Cursor triple used to walk historical record lists.

    Zero means "not set"; unset fields never reach the query string.
    """

    count: int = 0
    before: int = 0
    after: int = 0

    def __post_init__(self) -> None:
        for name in ("count", "before", "after"):
            if getattr(self, name) < 0:
                raise CallerUsageError(f"paging {name} must not be negative")

    def to_params(self) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = []
        if self.count:
            params.append(("count", str(self.count)))
        if self.before:
            params.append(("before", str(self.before)))
        if self.after:
            params.append(("after", str(self.after)))
        return params


__all__ = ["ClientConfig", "PagingParams", "DEFAULT_BASE_URL", "DEFAULT_API_VERSION", "DEFAULT_TIMEOUT"]
