"""InnoDB lock diagnostics captured while a deadlocked transaction is retried.

``SHOW ENGINE INNODB STATUS`` is the only way to see why MySQL picked a
transaction as a deadlock victim, so its output is logged on every retry.
Running it without the ``PROCESS`` privilege fails, and a failing statement
inside an open transaction may abort that transaction.  The capability is
therefore checked once, before any transaction is opened, and the result is
remembered for the lifetime of the process.

The capability moves from ``UNKNOWN`` to either ``AVAILABLE`` (with the checked
command) or ``UNAVAILABLE`` exactly once.  :meth:`DiagnosticsCapability.reset`
and :meth:`DiagnosticsCapability.override` exist for tests and operators.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from enum import Enum
from threading import Lock
from typing import Any

from .logging import RetryEvent, StructuredLogger, get_logger
from .transaction import SupportsIntrospection

__all__ = [
    "DEFAULT_CAPABILITY",
    "CapabilityState",
    "DiagnosticsCapability",
    "format_status_rows",
    "select_status_command",
    "status_command_for_version",
]

VERSION_QUERY = "SHOW VARIABLES LIKE 'version'"
LEGACY_STATUS_COMMAND = "SHOW INNODB STATUS"
ENGINE_STATUS_COMMAND = "SHOW ENGINE INNODB STATUS"
STATUS_HEADER = "INNODB Status follows:"

_INNODB_ADAPTERS = re.compile(r"mysql|mariadb", re.IGNORECASE)
_VERSION_PREFIX = re.compile(r"(\d+)(?:\.(\d+))?")


class CapabilityState(str, Enum):
    UNKNOWN = "unknown"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


def status_command_for_version(version: str) -> str:
    """Return the status command understood by a server reporting *version*."""

    match = _VERSION_PREFIX.match(version.strip())
    if match is None:
        return ENGINE_STATUS_COMMAND
    major, minor = int(match.group(1)), int(match.group(2) or 0)
    if (major, minor) < (5, 5):
        return LEGACY_STATUS_COMMAND
    return ENGINE_STATUS_COMMAND


def select_status_command(client: object, *, logger: StructuredLogger) -> str | None:
    """Check *client* and return a status command it is allowed to run, if any."""

    if not isinstance(client, SupportsIntrospection):
        return None
    try:
        if not _INNODB_ADAPTERS.search(client.adapter_name()):
            return None
        rows = client.select_rows(VERSION_QUERY)
        command = status_command_for_version(str(rows[0][1]))
        client.select_rows(command)
    except Exception as exc:
        logger.info(
            RetryEvent.DIAGNOSTICS_UNAVAILABLE, f"Cannot log innodb status: {exc}", error=str(exc)
        )
        return None
    return command


def format_status_rows(rows: Sequence[Sequence[Any]] | str) -> str:
    if isinstance(rows, str):
        return rows
    return "\n".join("\t".join(str(value) for value in row) for row in rows)


class DiagnosticsCapability:
    """Process-wide memo of whether lock diagnostics can be captured."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._command: str | None = None
        self._state = CapabilityState.UNKNOWN

    @property
    def state(self) -> CapabilityState:
        return self._state

    @property
    def command(self) -> str | None:
        return self._command

    @property
    def available(self) -> bool:
        return self._state is CapabilityState.AVAILABLE

    def resolve(self, client: object, *, logger: StructuredLogger | None = None) -> str | None:
        """Check *client* on first use and return the remembered command."""

        if self._state is not CapabilityState.UNKNOWN:
            return self._command
        with self._lock:
            if self._state is CapabilityState.UNKNOWN:
                command = select_status_command(client, logger=logger or get_logger())
                self._set(command)
        return self._command

    def capture(self, client: object, *, logger: StructuredLogger | None = None) -> None:
        """Log the engine status output; failures are logged and swallowed."""

        command = self._command
        if not self.available or command is None:
            return
        log = logger or get_logger()
        try:
            output = format_status_rows(client.select_rows(command))  # type: ignore[attr-defined]
        except Exception as exc:
            # Access denied at execution time, for example.
            log.info(RetryEvent.DIAGNOSTICS_UNAVAILABLE, f"Cannot log innodb status: {exc}", error=str(exc))
            return
        log.warning(RetryEvent.INNODB_STATUS, STATUS_HEADER, command=command)
        log.warning(RetryEvent.INNODB_STATUS, output, command=command)

    def override(self, command: str | None) -> None:
        """Pin the capability to *command*, or to unavailable when ``None``."""

        with self._lock:
            self._set(command)

    def reset(self) -> None:
        """Forget the check result so the next use checks again."""

        with self._lock:
            self._command = None
            self._state = CapabilityState.UNKNOWN

    def _set(self, command: str | None) -> None:
        # Command first: lock-free readers check the state before the command.
        self._command = command or None
        self._state = CapabilityState.AVAILABLE if command else CapabilityState.UNAVAILABLE


DEFAULT_CAPABILITY = DiagnosticsCapability()
