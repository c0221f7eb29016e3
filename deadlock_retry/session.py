"""Transaction primitive backed by a SQLAlchemy ORM session."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager, nullcontext
from typing import Any, TypeVar

from sqlalchemy import text
from sqlalchemy.orm import Session

from .exceptions import TransactionConfigurationError
from .transaction import IsolationLevel, TransactionOptions

__all__ = ["SessionTransactionExecutor"]

T = TypeVar("T")


class SessionTransactionExecutor:
    """Run units of work in (possibly nested) transactions on one session.

    The outermost scope begins and commits a real transaction.  Inner scopes
    join it, or open a SAVEPOINT when ``requires_new`` is set or the enclosing
    scope was opened with ``joinable=False``.

    A transaction the session already holds when the first scope opens (an
    autobegun one, or one begun by the caller) counts as an enclosing scope.
    Work joins it and its owner decides whether to commit.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._scopes: list[TransactionOptions] = []
        self._external = False

    @property
    def session(self) -> Session:
        return self._session

    def open_transactions(self) -> int:
        if not self._scopes:
            return int(self._session.in_transaction())
        return len(self._scopes) + int(self._external)

    def transaction(
        self,
        unit_of_work: Callable[[], T],
        *,
        requires_new: bool | None = None,
        isolation: IsolationLevel | None = None,
        joinable: bool = True,
    ) -> T:
        options = TransactionOptions(requires_new=requires_new, isolation=isolation, joinable=joinable)
        if not self._scopes:
            self._external = bool(self._session.in_transaction())
        outermost = not self._scopes and not self._external
        context = self._begin(options, outermost=outermost)
        self._scopes.append(options)
        try:
            with context:
                if outermost and options.isolation is not None:
                    self._session.connection(
                        execution_options={"isolation_level": options.isolation.value}
                    )
                return unit_of_work()
        finally:
            self._scopes.pop()

    def adapter_name(self) -> str:
        return self._session.get_bind().dialect.name

    def select_rows(self, sql: str) -> list[tuple[Any, ...]]:
        """Run *sql* on a dedicated connection so open transactions stay untouched."""

        engine = self._session.get_bind().engine
        with engine.connect() as connection:
            return [tuple(row) for row in connection.execute(text(sql))]

    def _begin(self, options: TransactionOptions, *, outermost: bool) -> AbstractContextManager[Any]:
        if outermost:
            return self._session.begin()
        if options.isolation is not None:
            raise TransactionConfigurationError(
                "cannot set the isolation level inside an open transaction"
            )
        parent_joinable = self._scopes[-1].joinable if self._scopes else True
        if options.requires_new or not parent_joinable:
            return self._session.begin_nested()
        return nullcontext()
