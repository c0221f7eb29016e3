# SPDX-License-Identifier: MIT
"""Tests for retry event logging."""
from __future__ import annotations

import io
import json
import logging
from collections.abc import Iterator

import pytest

from deadlock_retry.logging import (
    LOGGER_NAME,
    JSONFormatter,
    RetryEvent,
    StructuredLogger,
    configure_logging,
)


@pytest.fixture
def restore_package_logger() -> Iterator[logging.Logger]:
    package_logger = logging.getLogger(LOGGER_NAME)
    level, handlers = package_logger.level, list(package_logger.handlers)
    yield package_logger
    package_logger.setLevel(level)
    package_logger.handlers[:] = handlers


def test_json_formatter_includes_event_fields_and_exception() -> None:
    formatter = JSONFormatter()

    try:
        raise ValueError("boom")
    except ValueError as exc:
        record = logging.LogRecord(
            name=LOGGER_NAME,
            level=logging.INFO,
            pathname=__file__,
            lineno=42,
            msg="Deadlock detected on retry 1",
            args=(),
            exc_info=(ValueError, exc, exc.__traceback__),
        )
    record.event = RetryEvent.RETRYING_TRANSACTION.value
    record.extra_fields = {"attempt": 1}

    payload = json.loads(formatter.format(record))

    assert payload["level"] == "INFO"
    assert payload["message"] == "Deadlock detected on retry 1"
    assert payload["event"] == "DEADLOCK_RETRY_RETRYING_TRANSACTION"
    assert payload["attempt"] == 1
    assert "ValueError: boom" in payload["exception"]


def test_json_formatter_tolerates_foreign_records() -> None:
    record = logging.LogRecord(LOGGER_NAME, logging.INFO, __file__, 1, "plain", (), None)

    payload = json.loads(JSONFormatter().format(record))

    assert payload["event"] is None
    assert payload["message"] == "plain"


def test_records_carry_event_code_and_fields(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)

    StructuredLogger().warning(RetryEvent.INNODB_STATUS, "INNODB Status follows:", command="SHOW ENGINE INNODB STATUS")
    StructuredLogger().info(RetryEvent.NESTING_UNKNOWN, "depth unknown")

    status, unknown = caplog.records
    assert status.levelno == logging.WARNING
    assert status.event == "DEADLOCK_RETRY_INNODB_STATUS"
    assert status.extra_fields == {"command": "SHOW ENGINE INNODB STATUS"}
    assert unknown.levelno == logging.INFO
    assert unknown.event == "DEADLOCK_RETRY_NESTING_UNKNOWN"
    assert unknown.extra_fields == {}


def test_configure_logging_emits_json(restore_package_logger: logging.Logger) -> None:
    stream = io.StringIO()
    configure_logging(level="info", use_json=True, stream=stream)

    StructuredLogger().info(RetryEvent.NESTED_TRANSACTION, "nested", failure_kind="deadlock")

    payload = json.loads(stream.getvalue().splitlines()[-1])
    assert payload["logger"] == LOGGER_NAME
    assert payload["event"] == "DEADLOCK_RETRY_NESTED_TRANSACTION"
    assert payload["failure_kind"] == "deadlock"
    assert restore_package_logger.level == logging.INFO


def test_configure_logging_plain_text(restore_package_logger: logging.Logger) -> None:
    stream = io.StringIO()
    configure_logging(level="WARNING", use_json=False, stream=stream)

    StructuredLogger().info(RetryEvent.RETRYING_TRANSACTION, "hidden")
    StructuredLogger().warning(RetryEvent.INNODB_STATUS, "shown")

    output = stream.getvalue()
    assert "hidden" not in output
    assert "deadlock_retry - WARNING - shown" in output
