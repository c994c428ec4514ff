"""Millisecond delay primitive shared by the pool and retry helpers."""

from __future__ import annotations

import asyncio


async def delay(milliseconds: float) -> None:
    """Suspend the current task for ``milliseconds``."""

    if milliseconds < 0:
        raise ValueError(f"Delay must be >= 0 milliseconds, got {milliseconds!r}.")
    await asyncio.sleep(milliseconds / 1000)
