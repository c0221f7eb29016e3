"""Environment driven configuration for retrying transaction executors."""

from __future__ import annotations

from collections.abc import Callable
from typing import Tuple

from pydantic import Field, NonNegativeFloat, NonNegativeInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .diagnostics import DiagnosticsCapability
from .executor import RetryingTransactionExecutor
from .logging import configure_logging
from .policy import BACKOFF_SCHEDULE, MAXIMUM_RETRIES_ON_DEADLOCK, RetryPolicy
from .transaction import TransactionExecutor

__all__ = ["DeadlockRetrySettings"]


class DeadlockRetrySettings(BaseSettings):
    """Settings read from ``DEADLOCK_RETRY_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="DEADLOCK_RETRY_", frozen=True)

    max_retries: NonNegativeInt = Field(
        MAXIMUM_RETRIES_ON_DEADLOCK,
        description="Retries allowed after the initial attempt before the lock failure is surfaced.",
    )
    backoff_schedule: Tuple[NonNegativeFloat, ...] = Field(
        BACKOFF_SCHEDULE,
        min_length=1,
        description=(
            "Pause, in seconds, before each retry. Retries beyond the end of the schedule reuse "
            "its largest value. Provide as a JSON array in the environment."
        ),
    )
    diagnostics_enabled: bool = Field(
        True,
        description="Capture InnoDB status output on retries when the server grants access to it.",
    )
    log_level: str = Field("INFO", description="Level applied to the deadlock_retry logger.")
    log_json: bool = Field(True, description="Emit retry events as JSON documents.")

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unsupported log level: {value}")
        return normalized

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_retries=self.max_retries, backoff_schedule=self.backoff_schedule)

    def configure_logging(self, stream: object = None) -> None:
        configure_logging(level=self.log_level, use_json=self.log_json, stream=stream)

    def build_executor(
        self,
        executor: TransactionExecutor,
        *,
        capability: DiagnosticsCapability | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> RetryingTransactionExecutor:
        """Wrap *executor* with a retry layer configured from these settings."""

        if not self.diagnostics_enabled:
            capability = DiagnosticsCapability()
            capability.override(None)
        kwargs = {} if sleep is None else {"sleep": sleep}
        return RetryingTransactionExecutor(
            executor,
            policy=self.retry_policy(),
            capability=capability,
            **kwargs,
        )
