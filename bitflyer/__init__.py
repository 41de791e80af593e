"""Typed client for the bitFlyer Lightning REST API."""

from .api import (
    BitflyerClient,
    BitflyerError,
    CallerUsageError,
    ClientConfig,
    ConfigurationError,
    DeadlineExceededError,
    InvalidRequestError,
    NetworkError,
    PagingParams,
    ResponseDecodeError,
    StatusError,
)
from .infra import config_from_dict, configure_logging, load_config

__all__ = [
    "BitflyerClient",
    "ClientConfig",
    "PagingParams",
    "BitflyerError",
    "ConfigurationError",
    "InvalidRequestError",
    "NetworkError",
    "DeadlineExceededError",
    "StatusError",
    "ResponseDecodeError",
    "CallerUsageError",
    "load_config",
    "config_from_dict",
    "configure_logging",
]
