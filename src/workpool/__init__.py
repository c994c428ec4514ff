"""Bounded-concurrency task pools and retry helpers for asyncio."""

from workpool.chunking import chunk
from workpool.pool import (
    BatchSizeMismatchError,
    WorkPoolError,
    run_chunked_pool,
    run_pool,
)
from workpool.retry import RetryOptions, with_retry, with_retry_default
from workpool.timing import delay

__version__ = "0.1.0"

__all__ = [
    "BatchSizeMismatchError",
    "RetryOptions",
    "WorkPoolError",
    "__version__",
    "chunk",
    "delay",
    "run_chunked_pool",
    "run_pool",
    "with_retry",
    "with_retry_default",
]
