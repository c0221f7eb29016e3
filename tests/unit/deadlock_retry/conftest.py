"""Shared fixtures for the deadlock retry tests."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

from deadlock_retry.diagnostics import DEFAULT_CAPABILITY, DiagnosticsCapability
from deadlock_retry.logging import LOGGER_NAME
from tests.unit.deadlock_retry.fakes import FakeExecutor, SleepRecorder


@pytest.fixture(autouse=True)
def _reset_default_capability() -> Iterator[None]:
    DEFAULT_CAPABILITY.reset()
    yield
    DEFAULT_CAPABILITY.reset()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def no_diagnostics() -> DiagnosticsCapability:
    capability = DiagnosticsCapability()
    capability.override(None)
    return capability


@pytest.fixture
def retry_log(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    return caplog
