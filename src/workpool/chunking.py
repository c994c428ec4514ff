"""Split ordered sequences into fixed-size batches."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into ordered chunks of ``size`` elements.

    Every chunk holds exactly ``size`` elements except possibly the last one.
    ``size`` must be a positive integer; anything else is a caller error.

    >>> chunk([1, 2, 3], 2)
    [[1, 2], [3]]
    """

    if size <= 0:
        raise ValueError(f"Chunk size must be a positive integer, got {size!r}.")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]
