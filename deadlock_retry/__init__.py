"""Retry database transactions aborted by deadlocks and lock wait timeouts."""

from .config import DeadlockRetrySettings
from .diagnostics import DEFAULT_CAPABILITY, CapabilityState, DiagnosticsCapability
from .exceptions import (
    DatabaseError,
    DeadlockError,
    LockWaitTimeoutError,
    TransactionConfigurationError,
    TransientLockError,
)
from .executor import RetryingTransactionExecutor, transactional
from .logging import JSONFormatter, RetryEvent, StructuredLogger, configure_logging, get_logger
from .nesting import in_nested_transaction
from .policy import (
    BACKOFF_SCHEDULE,
    MAXIMUM_RETRIES_ON_DEADLOCK,
    FailureKind,
    RetryPolicy,
    classify_failure,
)
from .session import SessionTransactionExecutor
from .transaction import IsolationLevel, TransactionExecutor, TransactionOptions

__all__ = [
    "BACKOFF_SCHEDULE",
    "CapabilityState",
    "DEFAULT_CAPABILITY",
    "DatabaseError",
    "DeadlockError",
    "DeadlockRetrySettings",
    "DiagnosticsCapability",
    "FailureKind",
    "IsolationLevel",
    "JSONFormatter",
    "LockWaitTimeoutError",
    "MAXIMUM_RETRIES_ON_DEADLOCK",
    "RetryEvent",
    "RetryPolicy",
    "RetryingTransactionExecutor",
    "SessionTransactionExecutor",
    "StructuredLogger",
    "TransactionConfigurationError",
    "TransactionExecutor",
    "TransactionOptions",
    "TransientLockError",
    "classify_failure",
    "configure_logging",
    "get_logger",
    "in_nested_transaction",
    "transactional",
]
