"""Exception hierarchy raised by the bitFlyer REST client.

Every failure is raised straight to the caller of the endpoint method. Nothing
is retried, so callers can branch on the class to decide what to do next.
"""

from __future__ import annotations

from typing import Optional


class BitflyerError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(BitflyerError):
    """Client configuration is malformed (bad base URL, version or timeout)."""


class InvalidRequestError(ConfigurationError):
    """A request URL or path could not be constructed."""


class NetworkError(BitflyerError):
    """The transport could not complete the exchange."""


class DeadlineExceededError(NetworkError):
    """The caller-supplied timeout expired before a response arrived."""


class StatusError(BitflyerError):
    """The API answered with a status code other than 200."""

    def __init__(self, status_code: int, body: str = "", error_message: Optional[str] = None) -> None:
        message = f"bitFlyer returned HTTP {status_code}"
        if error_message:
            message = f"{message}: {error_message}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.error_message = error_message


class ResponseDecodeError(BitflyerError):
    """A successful response body did not match the expected shape."""

    def __init__(self, message: str, cause: Optional[BaseException] = None, body: str = "") -> None:
        super().__init__(message)
        self.cause = cause
        self.body = body


class CallerUsageError(BitflyerError, ValueError):
    """The caller omitted a required parameter or parameter combination."""


__all__ = [
    "BitflyerError",
    "ConfigurationError",
    "InvalidRequestError",
    "NetworkError",
    "DeadlineExceededError",
    "StatusError",
    "ResponseDecodeError",
    "CallerUsageError",
]
