"""Transaction options and the collaborator surface the retry layer calls into."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")

__all__ = [
    "IsolationLevel",
    "SupportsIntrospection",
    "TransactionExecutor",
    "TransactionOptions",
]


class IsolationLevel(str, Enum):
    """SQL standard isolation levels accepted by transaction executors."""

    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"


class TransactionOptions(BaseModel):
    """Options forwarded verbatim to the wrapped transaction primitive."""

    model_config = ConfigDict(frozen=True)

    requires_new: bool | None = None
    isolation: IsolationLevel | None = None
    joinable: bool = True

    def as_kwargs(self) -> dict[str, Any]:
        return {
            "requires_new": self.requires_new,
            "isolation": self.isolation,
            "joinable": self.joinable,
        }


@runtime_checkable
class TransactionExecutor(Protocol):
    """Minimal surface of something able to run a unit of work in a transaction."""

    def transaction(
        self,
        unit_of_work: Callable[[], T],
        *,
        requires_new: bool | None = None,
        isolation: IsolationLevel | None = None,
        joinable: bool = True,
    ) -> T:  # pragma: no cover - runtime duck typing
        """Run *unit_of_work* inside a transaction scope and return its result."""

    def open_transactions(self) -> int:  # pragma: no cover - runtime duck typing
        """Return the number of transaction scopes currently open on the connection."""


@runtime_checkable
class SupportsIntrospection(Protocol):
    """Storage client calls used only for lock diagnostics."""

    def adapter_name(self) -> str:  # pragma: no cover - runtime duck typing
        """Return the adapter family name, e.g. ``mysql`` or ``postgresql``."""

    def select_rows(self, sql: str) -> Sequence[Sequence[Any]]:  # pragma: no cover - runtime duck typing
        """Execute *sql* and return every row of the result set."""
