"""Request construction and HMAC-SHA256 signing.

bitFlyer authenticates private calls with three headers::

    ACCESS-KEY        the key identifier
    ACCESS-TIMESTAMP  Unix time in seconds, as a decimal string
    ACCESS-SIGN       hex(HMAC-SHA256(secret, timestamp + method + path + body))

``path`` is the path component only (no scheme, host or query) and ``body`` is
the exact text placed on the wire, so the body is serialized once here and the
same string is both signed and sent.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import urlencode, urlsplit, urlunsplit

from .endpoint import ClientConfig
from .errors import InvalidRequestError

JSON_CONTENT_TYPE = "application/json"
HEADER_KEY = "ACCESS-KEY"
HEADER_TIMESTAMP = "ACCESS-TIMESTAMP"
HEADER_SIGN = "ACCESS-SIGN"

_SUBPATH = re.compile(r"^[a-z]+(?:/[a-z]+)*$")
_METHODS = {"GET", "POST"}

QueryParams = Union[Mapping[str, Any], Sequence[Tuple[str, Any]]]


@dataclass(frozen=True)
class SignedRequest:
    """A fully addressed request, ready to hand to the transport."""

    method: str
    url: str
    path: str
    query: str = ""
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def is_signed(self) -> bool:
        return HEADER_SIGN in self.headers


def sign(secret: str, timestamp: str, method: str, path: str, body: str = "") -> str:
    """Return the hex HMAC-SHA256 of ``timestamp + method + path + body``."""

    text = timestamp + method + path + body
    return hmac.new(secret.encode("utf-8"), text.encode("utf-8"), hashlib.sha256).hexdigest()


def encode_query(params: Optional[QueryParams]) -> str:
    """URL-encode params, dropping ``None``, empty strings and zeros.

    Insertion order is kept so paging cursors encode as ``count=..&before=..``.
    """

    if not params:
        return ""
    items: Iterable[Tuple[str, Any]] = params.items() if isinstance(params, Mapping) else params
    kept = []
    for key, value in items:
        if value is None or value == "" or (value == 0 and not isinstance(value, bool)):
            continue
        kept.append((key, str(value)))
    return urlencode(kept)


def encode_body(payload: Optional[Any]) -> str:
    if payload is None:
        return ""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def join_path(config: ClientConfig, subpath: str) -> str:
    """Join base path, API version and a fixed endpoint subpath."""

    if not _SUBPATH.match(subpath):
        raise InvalidRequestError(f"invalid endpoint path {subpath!r}")
    prefix = urlsplit(config.base_url).path.strip("/")
    segments = [segment for segment in (prefix, config.api_version.strip("/"), subpath) if segment]
    return "/" + "/".join(segments)


def build_request(
    config: ClientConfig,
    method: str,
    subpath: str,
    params: Optional[QueryParams] = None,
    payload: Optional[Any] = None,
    timestamp: Optional[str] = None,
) -> SignedRequest:
    """Build the request for ``method subpath`` and sign it when credentials exist.

    ``timestamp`` is required when ``config`` carries credentials; the client
    passes the current Unix time.
    """

    method = method.upper()
    if method not in _METHODS:
        raise InvalidRequestError(f"unsupported HTTP method {method!r}")

    path = join_path(config, subpath)
    query = encode_query(params)
    parts = urlsplit(config.base_url)
    url = urlunsplit((parts.scheme, parts.netloc, path, query, ""))
    body = encode_body(payload)

    headers: Dict[str, str] = {}
    if body:
        headers["Content-Type"] = JSON_CONTENT_TYPE
    if config.has_credentials:
        if timestamp is None:
            raise InvalidRequestError("a timestamp is required to sign requests")
        headers[HEADER_KEY] = config.api_key
        headers[HEADER_TIMESTAMP] = timestamp
        headers[HEADER_SIGN] = sign(config.api_secret, timestamp, method, path, body)
        headers["Content-Type"] = JSON_CONTENT_TYPE

    return SignedRequest(method=method, url=url, path=path, query=query, body=body, headers=headers)


__all__ = [
    "SignedRequest",
    "sign",
    "encode_query",
    "encode_body",
    "join_path",
    "build_request",
    "HEADER_KEY",
    "HEADER_TIMESTAMP",
    "HEADER_SIGN",
    "JSON_CONTENT_TYPE",
]
