"""Domain specific exceptions raised around retried transactions."""

from __future__ import annotations

__all__ = [
    "DatabaseError",
    "DeadlockError",
    "LockWaitTimeoutError",
    "TransactionConfigurationError",
    "TransientLockError",
]


class DatabaseError(RuntimeError):
    """Base class for database access related failures."""


class TransientLockError(DatabaseError):
    """Marker exception for lock contention the storage engine resolved by aborting us."""


class DeadlockError(TransientLockError):
    """The storage engine detected a lock cycle and picked this transaction as the victim."""


class LockWaitTimeoutError(TransientLockError):
    """A lock could not be acquired within the engine's configured wait threshold."""


class TransactionConfigurationError(DatabaseError):
    """Raised when transaction options cannot be honoured in the current scope."""
