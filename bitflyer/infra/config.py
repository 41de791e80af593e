"""Config loading utilities for the bitFlyer client."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Union

import yaml

from bitflyer.api.endpoint import DEFAULT_API_VERSION, DEFAULT_BASE_URL, DEFAULT_TIMEOUT, ClientConfig
from bitflyer.api.errors import ConfigurationError

_KNOWN_KEYS = {"base_url", "api_version", "api_key", "api_secret", "timeout"}


def config_from_dict(raw: Dict[str, Any]) -> ClientConfig:
    """Build a :class:`ClientConfig` from a mapping, accepting a ``bitflyer:`` section."""

    section = raw.get("bitflyer", raw)
    if not isinstance(section, dict):
        raise ConfigurationError("the bitflyer section must be a mapping")

    unknown = set(section) - _KNOWN_KEYS
    if unknown:
        raise ConfigurationError(f"unknown configuration keys: {', '.join(sorted(unknown))}")

    try:
        timeout = float(section.get("timeout", DEFAULT_TIMEOUT))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"timeout must be a number, got {section.get('timeout')!r}") from exc

    return ClientConfig(
        base_url=str(section.get("base_url", DEFAULT_BASE_URL)),
        api_version=str(section.get("api_version", DEFAULT_API_VERSION)),
        api_key=str(section.get("api_key") or ""),
        api_secret=str(section.get("api_secret") or ""),
        timeout=timeout,
    )


def load_config(path: Union[str, Path]) -> ClientConfig:
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        raise FileNotFoundError(f"Configuration file not found: {resolved}")
    with resolved.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError("configuration file must contain a mapping at the top level")
    return config_from_dict(raw)


__all__ = ["load_config", "config_from_dict"]
