"""Detect whether a call runs inside an already open transaction."""

from __future__ import annotations

from .logging import RetryEvent, StructuredLogger, get_logger

__all__ = ["in_nested_transaction"]


def in_nested_transaction(executor: object, *, logger: StructuredLogger | None = None) -> bool:
    """Return ``True`` when *executor* already has an open transaction scope.

    Executors that cannot report their depth are treated as outermost.
    """

    open_transactions = getattr(executor, "open_transactions", None)
    if not callable(open_transactions):
        return False
    try:
        depth = int(open_transactions())
    except Exception as exc:
        (logger or get_logger()).info(
            RetryEvent.NESTING_UNKNOWN,
            f"Cannot determine transaction depth, treating call as outermost: {exc}",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return False
    return depth != 0
