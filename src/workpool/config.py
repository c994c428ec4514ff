"""Runtime configuration for pools, retries and the CLI."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from workpool.retry import ErrorObserver, RetryOptions

DEFAULT_WORKERS = 10
DEFAULT_CHUNK_SIZE = 10
DEFAULT_ATTEMPTS = 3
DEFAULT_BACKOFF_DURATION_MS = 500.0
DEFAULT_BACKOFF_JITTER_MS = 25.0
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(slots=True)
class PoolSettings:
    """Worker pool settings."""

    workers: int = DEFAULT_WORKERS
    chunk_size: int = DEFAULT_CHUNK_SIZE


@dataclass(slots=True)
class RetrySettings:
    """Retry wrapper settings."""

    attempts: int = DEFAULT_ATTEMPTS
    backoff_duration_ms: float = DEFAULT_BACKOFF_DURATION_MS
    backoff_jitter_ms: float = DEFAULT_BACKOFF_JITTER_MS
    max_backoff_ms: float | None = None

    def to_options(self, on_error: ErrorObserver | None = None) -> RetryOptions:
        """Build retry options for ``with_retry`` from these settings."""

        from workpool.retry import RetryOptions  # noqa: PLC0415

        return RetryOptions(
            attempts=self.attempts,
            backoff_duration_ms=self.backoff_duration_ms,
            backoff_jitter_ms=self.backoff_jitter_ms,
            max_backoff_ms=self.max_backoff_ms,
            on_error=on_error,
        )


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    pool: PoolSettings = field(default_factory=PoolSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    command_timeout_seconds: float | None = None
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults matching the library."""

        return cls(
            pool=PoolSettings(
                workers=_env_int("WORKPOOL_WORKERS", DEFAULT_WORKERS),
                chunk_size=_env_int("WORKPOOL_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
            ),
            retry=RetrySettings(
                attempts=_env_int("WORKPOOL_RETRY_ATTEMPTS", DEFAULT_ATTEMPTS),
                backoff_duration_ms=_env_float(
                    "WORKPOOL_RETRY_BACKOFF_MS",
                    DEFAULT_BACKOFF_DURATION_MS,
                ),
                backoff_jitter_ms=_env_float("WORKPOOL_RETRY_JITTER_MS", DEFAULT_BACKOFF_JITTER_MS),
                max_backoff_ms=_env_optional_float("WORKPOOL_RETRY_MAX_BACKOFF_MS"),
            ),
            command_timeout_seconds=_env_optional_float("WORKPOOL_COMMAND_TIMEOUT_SECONDS"),
            log_level=env_log_level(),
        )

    def validate(self) -> None:
        """Raise configuration error if any value is out of range."""

        if self.pool.workers < 1:
            raise ValueError("WORKPOOL_WORKERS must be >= 1.")
        if self.pool.chunk_size < 1:
            raise ValueError("WORKPOOL_CHUNK_SIZE must be >= 1.")
        if self.retry.attempts < 1:
            raise ValueError("WORKPOOL_RETRY_ATTEMPTS must be >= 1.")
        if self.retry.backoff_duration_ms < 0:
            raise ValueError("WORKPOOL_RETRY_BACKOFF_MS must be >= 0.")
        if self.retry.backoff_jitter_ms < 0:
            raise ValueError("WORKPOOL_RETRY_JITTER_MS must be >= 0.")
        if self.retry.max_backoff_ms is not None and self.retry.max_backoff_ms < 0:
            raise ValueError("WORKPOOL_RETRY_MAX_BACKOFF_MS must be >= 0.")
        if self.command_timeout_seconds is not None and self.command_timeout_seconds <= 0:
            raise ValueError("WORKPOOL_COMMAND_TIMEOUT_SECONDS must be > 0.")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"WORKPOOL_LOG_LEVEL is not a known level: {self.log_level!r}.")


def _env_optional_float(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as error:
        raise ValueError(f"Invalid {name} value: {raw!r}") from error


def env_log_level() -> str:
    """Logging level name from WORKPOOL_LOG_LEVEL, upper-cased."""

    return os.getenv("WORKPOOL_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as error:
        raise ValueError(f"Invalid {name} value: {raw!r} (expected an integer)") from error


def _env_float(name: str, default: float) -> float:
    value = _env_optional_float(name)
    return default if value is None else value
