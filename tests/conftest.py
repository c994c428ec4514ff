"""Shared test fixtures."""

from __future__ import annotations

import pytest


@pytest.fixture()
def recorded_delays(monkeypatch) -> list[float]:
    """Replace the retry backoff wait with a recorder that does not sleep."""
    waits: list[float] = []

    async def _fake_delay(milliseconds: float) -> None:
        waits.append(milliseconds)

    monkeypatch.setattr("workpool.retry.delay", _fake_delay)
    return waits


@pytest.fixture()
def clean_env(monkeypatch) -> None:
    """Drop WORKPOOL_* variables that may leak from the developer shell."""
    for name in (
        "WORKPOOL_WORKERS",
        "WORKPOOL_CHUNK_SIZE",
        "WORKPOOL_RETRY_ATTEMPTS",
        "WORKPOOL_RETRY_BACKOFF_MS",
        "WORKPOOL_RETRY_JITTER_MS",
        "WORKPOOL_RETRY_MAX_BACKOFF_MS",
        "WORKPOOL_COMMAND_TIMEOUT_SECONDS",
        "WORKPOOL_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
