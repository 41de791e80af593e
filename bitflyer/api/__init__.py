"""Request signing, dispatch and typed decoding for the bitFlyer REST API."""

from .client import BitflyerClient
from .endpoint import ClientConfig, PagingParams
from .errors import (
    BitflyerError,
    CallerUsageError,
    ConfigurationError,
    DeadlineExceededError,
    InvalidRequestError,
    NetworkError,
    ResponseDecodeError,
    StatusError,
)
from .payloads import ChildOrderRequest, ParentOrderParameter, ParentOrderRequest, WithdrawRequest
from .signing import SignedRequest, build_request, sign

__all__ = [
    "BitflyerClient",
    "ClientConfig",
    "PagingParams",
    "SignedRequest",
    "build_request",
    "sign",
    "ChildOrderRequest",
    "ParentOrderRequest",
    "ParentOrderParameter",
    "WithdrawRequest",
    "BitflyerError",
    "ConfigurationError",
    "InvalidRequestError",
    "NetworkError",
    "DeadlineExceededError",
    "StatusError",
    "ResponseDecodeError",
    "CallerUsageError",
]
