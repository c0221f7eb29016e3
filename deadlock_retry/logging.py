# SPDX-License-Identifier: MIT
"""Retry event logging.

Each retry decision is a :class:`RetryEvent`.  Records carry the event code as
``record.event`` and the failure details as ``record.extra_fields`` so log
pipelines can alert on codes while the message stays readable.
"""
from __future__ import annotations

import json
import logging
import sys
from enum import Enum
from typing import Any, Dict, Optional

LOGGER_NAME = "deadlock_retry"


class RetryEvent(str, Enum):
    NESTED_TRANSACTION = "DEADLOCK_RETRY_NESTED_TRANSACTION"
    MAXIMUM_RETRIES_EXCEEDED = "DEADLOCK_RETRY_MAXIMUM_RETRIES_EXCEEDED"
    RETRYING_TRANSACTION = "DEADLOCK_RETRY_RETRYING_TRANSACTION"
    INNODB_STATUS = "DEADLOCK_RETRY_INNODB_STATUS"
    DIAGNOSTICS_UNAVAILABLE = "DEADLOCK_RETRY_DIAGNOSTICS_UNAVAILABLE"
    NESTING_UNKNOWN = "DEADLOCK_RETRY_NESTING_UNKNOWN"


class JSONFormatter(logging.Formatter):
    """Render retry events as one JSON document per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", None),
            "message": record.getMessage(),
        }
        payload.update(getattr(record, "extra_fields", {}))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class StructuredLogger:
    """Emit :class:`RetryEvent` records on a standard library logger."""

    def __init__(self, name: str = LOGGER_NAME):
        self.logger = logging.getLogger(name)

    def emit(self, level: int, event: RetryEvent, msg: str, **fields: Any) -> None:
        self.logger.log(level, msg, extra={"event": event.value, "extra_fields": fields})

    def info(self, event: RetryEvent, msg: str, **fields: Any) -> None:
        self.emit(logging.INFO, event, msg, **fields)

    def warning(self, event: RetryEvent, msg: str, **fields: Any) -> None:
        self.emit(logging.WARNING, event, msg, **fields)


def configure_logging(level: str = "INFO", use_json: bool = True, stream: Any = None) -> None:
    """Attach a single stream handler to the ``deadlock_retry`` logger."""
    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(getattr(logging, level.upper()))
    package_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    if use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    package_logger.addHandler(handler)


def get_logger(name: Optional[str] = None) -> StructuredLogger:
    return StructuredLogger(name or LOGGER_NAME)


__all__ = [
    "JSONFormatter",
    "LOGGER_NAME",
    "RetryEvent",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]
