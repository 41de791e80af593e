"""Logging configuration helpers."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any, Dict, Optional, Union

REDACTED = "***"


class JsonFormatter(logging.Formatter):
    """Emit one JSON object per record, carrying any ``extra`` fields.

    Extras named after credentials or signature headers are redacted.
    """

    _standard_attrs = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}
    _sensitive_keys = {"api_key", "api_secret", "access-key", "access-sign", "secret", "signature"}

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 - logging interface name
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = record.stack_info

        for key, value in record.__dict__.items():
            if key in self._standard_attrs:
                continue
            payload[key] = REDACTED if key.lower() in self._sensitive_keys else value
        return json.dumps(payload, default=str)


def configure_logging(level: Union[str, int] = "INFO", stream: Optional[IO[str]] = None) -> logging.Logger:
    """Send ``bitflyer`` package logs to ``stream`` (stdout by default) as JSON lines."""

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("bitflyer")
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger


__all__ = ["JsonFormatter", "configure_logging"]
