"""Retry policy for transactions aborted by storage engine lock contention."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, NonNegativeInt
from sqlalchemy.exc import DBAPIError
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt

from .exceptions import DeadlockError, LockWaitTimeoutError

__all__ = [
    "BACKOFF_SCHEDULE",
    "MAXIMUM_RETRIES_ON_DEADLOCK",
    "FailureKind",
    "RetryPolicy",
    "classify_failure",
]

MAXIMUM_RETRIES_ON_DEADLOCK = 3

# Pause before retry N is BACKOFF_SCHEDULE[N - 1]; later retries reuse the cap.
BACKOFF_SCHEDULE: tuple[float, ...] = (0.0, 1.0, 2.0, 4.0, 8.0, 16.0, 32.0)

_MYSQL_LOCK_WAIT_TIMEOUT = 1205
_MYSQL_DEADLOCK = 1213
_PG_LOCK_NOT_AVAILABLE = "55P03"
_PG_DEADLOCK_DETECTED = "40P01"

_MYSQL_DRIVER_MODULES = frozenset({"pymysql", "MySQLdb", "mysql", "mariadb", "aiomysql", "asyncmy"})


class FailureKind(str, Enum):
    """Outcome of classifying a failed transaction attempt."""

    DEADLOCK = "deadlock"
    LOCK_TIMEOUT = "lock_timeout"
    UNRELATED = "unrelated"

    @property
    def retryable(self) -> bool:
        return self is not FailureKind.UNRELATED


def classify_failure(error: BaseException) -> FailureKind:
    """Map *error* onto the lock contention taxonomy.

    SQLAlchemy wraps driver exceptions in :class:`~sqlalchemy.exc.DBAPIError`;
    the wrapped driver error carries the engine specific code.
    """

    if isinstance(error, DeadlockError):
        return FailureKind.DEADLOCK
    if isinstance(error, LockWaitTimeoutError):
        return FailureKind.LOCK_TIMEOUT
    if isinstance(error, DBAPIError):
        return _classify_driver_error(error.orig, wrapped=True)
    return _classify_driver_error(error, wrapped=False)


def _classify_driver_error(error: BaseException | None, *, wrapped: bool) -> FailureKind:
    if error is None:
        return FailureKind.UNRELATED

    sqlstate = getattr(error, "sqlstate", None) or getattr(error, "pgcode", None)
    if sqlstate == _PG_DEADLOCK_DETECTED:
        return FailureKind.DEADLOCK
    if sqlstate == _PG_LOCK_NOT_AVAILABLE:
        return FailureKind.LOCK_TIMEOUT

    if not wrapped and type(error).__module__.split(".")[0] not in _MYSQL_DRIVER_MODULES:
        return FailureKind.UNRELATED
    code = _mysql_error_number(error)
    if code == _MYSQL_DEADLOCK:
        return FailureKind.DEADLOCK
    if code == _MYSQL_LOCK_WAIT_TIMEOUT:
        return FailureKind.LOCK_TIMEOUT
    return FailureKind.UNRELATED


def _mysql_error_number(error: BaseException) -> int | None:
    # PyMySQL and mysqlclient put the server error number first in ``args``;
    # mysql-connector exposes it as ``errno``.
    errno = getattr(error, "errno", None)
    if isinstance(errno, int):
        return errno
    if error.args and isinstance(error.args[0], int):
        return error.args[0]
    return None


class RetryPolicy(BaseModel):
    """Retry budget and backoff schedule for lock contention failures."""

    model_config = ConfigDict(frozen=True)

    max_retries: NonNegativeInt = Field(
        MAXIMUM_RETRIES_ON_DEADLOCK,
        description="Retries allowed after the initial attempt before the failure is surfaced.",
    )
    backoff_schedule: tuple[NonNegativeFloat, ...] = Field(
        BACKOFF_SCHEDULE,
        min_length=1,
        description="Pause, in seconds, before each retry. Retries past the end reuse the largest value.",
    )

    def backoff_seconds(self, attempt: int) -> float:
        """Return the pause before retry *attempt* (1-indexed)."""

        if attempt < 1:
            raise ValueError("attempt numbers start at 1")
        if attempt > len(self.backoff_schedule):
            return float(max(self.backoff_schedule))
        return float(self.backoff_schedule[attempt - 1])

    def is_exhausted(self, retries: int) -> bool:
        """Return ``True`` once *retries* retries have already been spent."""

        return retries >= self.max_retries

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        return classify_failure(error).retryable

    def build(
        self,
        *,
        sleep: Callable[[float], None],
        before_sleep: Callable[[RetryCallState], None] | None = None,
    ) -> Retrying:
        """Return a configured :class:`~tenacity.Retrying` instance."""

        return Retrying(
            stop=stop_after_attempt(int(self.max_retries) + 1),
            wait=self._wait,
            retry=retry_if_exception(self.is_retryable),
            sleep=sleep,
            before_sleep=before_sleep,
            reraise=True,
        )

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.backoff_seconds(retry_state.attempt_number)
