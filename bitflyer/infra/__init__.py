"""Infrastructure utilities for logging and configuration."""

from .config import config_from_dict, load_config
from .logging import configure_logging

__all__ = ["configure_logging", "config_from_dict", "load_config"]
