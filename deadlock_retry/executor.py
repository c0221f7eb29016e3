"""Transaction executor that retries lock contention at the outermost scope.

Only the outermost transaction retries.  Retrying a nested scope would re-run
part of the work while the enclosing transaction keeps its earlier effects, so
nested scopes log the failure and re-raise it for the outermost caller.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar, cast

from tenacity import RetryCallState

from .diagnostics import DEFAULT_CAPABILITY, DiagnosticsCapability
from .logging import RetryEvent, StructuredLogger, get_logger
from .nesting import in_nested_transaction
from .policy import RetryPolicy, classify_failure
from .transaction import IsolationLevel, TransactionExecutor, TransactionOptions

__all__ = ["RetryingTransactionExecutor", "transactional"]

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])


class RetryingTransactionExecutor:
    """Wrap *executor* so deadlocks and lock wait timeouts are retried.

    Parameters
    ----------
    executor:
        The real transaction primitive. It owns the nesting depth reported by
        ``open_transactions()``.
    policy:
        Retry budget and backoff schedule. Defaults to three retries pausing
        0, 1 and 2 seconds.
    capability:
        Diagnostics capability holder. Defaults to the process-wide instance.
    sleep:
        Blocking delay primitive. Never called for a zero pause.
    """

    def __init__(
        self,
        executor: TransactionExecutor,
        *,
        policy: RetryPolicy | None = None,
        capability: DiagnosticsCapability | None = None,
        logger: StructuredLogger | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._executor = executor
        self._policy = policy or RetryPolicy()
        self._capability = capability or DEFAULT_CAPABILITY
        self._logger = logger or get_logger()
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def capability(self) -> DiagnosticsCapability:
        return self._capability

    def open_transactions(self) -> int:
        return int(self._executor.open_transactions())

    def transaction(
        self,
        unit_of_work: Callable[[], T],
        *,
        requires_new: bool | None = None,
        isolation: IsolationLevel | None = None,
        joinable: bool = True,
    ) -> T:
        """Run *unit_of_work* in a transaction, retrying lock contention."""

        options = TransactionOptions(requires_new=requires_new, isolation=isolation, joinable=joinable)
        self._capability.resolve(self._executor, logger=self._logger)
        if in_nested_transaction(self._executor, logger=self._logger):
            return self._run_nested(unit_of_work, options)
        return self._run_outermost(unit_of_work, options)

    def _attempt(self, unit_of_work: Callable[[], T], options: TransactionOptions) -> T:
        return self._executor.transaction(unit_of_work, **options.as_kwargs())

    def _run_nested(self, unit_of_work: Callable[[], T], options: TransactionOptions) -> T:
        try:
            return self._attempt(unit_of_work, options)
        except Exception as exc:
            kind = classify_failure(exc)
            if kind.retryable:
                self._logger.info(
                    RetryEvent.NESTED_TRANSACTION,
                    f"Deadlock detected in a nested transaction, not retrying. [{type(exc).__name__}]",
                    failure_kind=kind.value,
                    error_type=type(exc).__name__,
                )
            raise

    def _run_outermost(self, unit_of_work: Callable[[], T], options: TransactionOptions) -> T:
        retrying = self._policy.build(sleep=self._pause, before_sleep=self._before_retry)
        attempts = 0
        try:
            for attempt in retrying:
                attempts = attempt.retry_state.attempt_number
                with attempt:
                    return self._attempt(unit_of_work, options)
        except Exception as exc:
            kind = classify_failure(exc)
            if kind.retryable and self._policy.is_exhausted(attempts - 1):
                self._logger.info(
                    RetryEvent.MAXIMUM_RETRIES_EXCEEDED,
                    "Deadlock detected and maximum retries exceeded "
                    f"(maximum: {self._policy.max_retries}), not retrying. [{type(exc).__name__}]",
                    failure_kind=kind.value,
                    error_type=type(exc).__name__,
                    max_retries=self._policy.max_retries,
                )
            raise
        raise RuntimeError("Retrying loop exited unexpectedly")

    def _before_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome is not None else None
        kind = classify_failure(error) if error is not None else None
        retry_number = retry_state.attempt_number
        pause = retry_state.next_action.sleep if retry_state.next_action is not None else 0.0
        error_type = type(error).__name__
        self._logger.info(
            RetryEvent.RETRYING_TRANSACTION,
            f"Deadlock detected on retry {retry_number}, retrying transaction in {pause:g} seconds. [{error_type}]",
            failure_kind=kind.value if kind is not None else None,
            error_type=error_type,
            attempt=retry_number,
            pause_seconds=pause,
        )
        self._capability.capture(self._executor, logger=self._logger)

    def _pause(self, seconds: float) -> None:
        if seconds > 0:
            self._sleep(float(seconds))


def transactional(
    executor: TransactionExecutor,
    *,
    requires_new: bool | None = None,
    isolation: IsolationLevel | None = None,
    joinable: bool = True,
) -> Callable[[F], F]:
    """Decorate a function so every call runs through ``executor.transaction``.

    >>> retrying = RetryingTransactionExecutor(SessionTransactionExecutor(session))  # doctest: +SKIP
    >>> @transactional(retrying)  # doctest: +SKIP
    ... def transfer(source, target, amount): ...
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return executor.transaction(
                lambda: func(*args, **kwargs),
                requires_new=requires_new,
                isolation=isolation,
                joinable=joinable,
            )

        return cast(F, wrapper)

    return decorator
