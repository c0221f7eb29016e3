# SPDX-License-Identifier: MIT
from __future__ import annotations

import pytest

try:
    from hypothesis import given, settings, strategies as st
except ImportError:  # pragma: no cover
    pytest.skip("hypothesis not installed", allow_module_level=True)

from deadlock_retry.diagnostics import DiagnosticsCapability
from deadlock_retry.exceptions import DeadlockError, LockWaitTimeoutError
from deadlock_retry.executor import RetryingTransactionExecutor
from deadlock_retry.policy import BACKOFF_SCHEDULE, RetryPolicy
from tests.unit.deadlock_retry.fakes import FakeExecutor, SleepRecorder


@pytest.mark.property
@settings(max_examples=200, deadline=None)
@given(attempt=st.integers(min_value=1, max_value=10_000))
def test_backoff_is_bounded_and_non_decreasing(attempt: int) -> None:
    policy = RetryPolicy()

    pause = policy.backoff_seconds(attempt)

    assert 0.0 <= pause <= max(BACKOFF_SCHEDULE)
    assert policy.backoff_seconds(attempt + 1) >= pause


@pytest.mark.property
@settings(max_examples=100, deadline=None)
@given(
    failures=st.integers(min_value=0, max_value=12),
    max_retries=st.integers(min_value=0, max_value=9),
    lock_timeout=st.booleans(),
)
def test_attempts_and_pauses_follow_the_budget(failures: int, max_retries: int, lock_timeout: bool) -> None:
    executor = FakeExecutor()
    sleeps = SleepRecorder()
    capability = DiagnosticsCapability()
    capability.override(None)
    policy = RetryPolicy(max_retries=max_retries)
    retrying = RetryingTransactionExecutor(executor, policy=policy, capability=capability, sleep=sleeps)
    error_type = LockWaitTimeoutError if lock_timeout else DeadlockError
    remaining = failures

    def unit_of_work() -> str:
        nonlocal remaining
        if remaining:
            remaining -= 1
            raise error_type("lock contention")
        return "ok"

    retries = min(failures, max_retries)
    expected_sleeps = [
        policy.backoff_seconds(n) for n in range(1, retries + 1) if policy.backoff_seconds(n) > 0
    ]
    if failures > max_retries:
        with pytest.raises(error_type):
            retrying.transaction(unit_of_work)
    else:
        assert retrying.transaction(unit_of_work) == "ok"

    assert len(executor.calls) == retries + 1
    assert sleeps.calls == expected_sleeps
    assert executor.depth == 0
