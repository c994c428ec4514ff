"""Bounded-concurrency worker pools over ordered task lists.

``run_pool`` is a drop-in replacement for ``asyncio.gather(*(fn(t) for t in
tasks))`` that never keeps more than ``workers`` calls in flight.  Results
come back in task order regardless of completion order.

Each queued task is paired with its index when the queue is built, so a
completion always lands in the slot of the task that produced it, even when
the task list holds several equal values.

Failure policy: the first failing task aborts the pool and its exception
reaches the caller unchanged.  Nothing new is dispatched after that, but
calls already in flight are never cancelled; they finish detached and any
further failure is logged and dropped.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from itertools import chain
from typing import Any, TypeVar, cast

from workpool.chunking import chunk
from workpool.config import DEFAULT_CHUNK_SIZE, DEFAULT_WORKERS

logger = logging.getLogger(__name__)

In = TypeVar("In")
Out = TypeVar("Out")

MaybeAwaitable = Out | Awaitable[Out]

_PENDING: Any = object()
_DETACHED: set[asyncio.Future[Any]] = set()


class WorkPoolError(Exception):
    """Base class for errors raised by the pool itself (not by tasks)."""


class BatchSizeMismatchError(WorkPoolError):
    """Batch function returned a different number of outputs than inputs."""

    def __init__(self, *, expected: int, actual: int) -> None:
        super().__init__(
            f"Batch function must return one output per input: "
            f"expected {expected} outputs, got {actual}.",
        )
        self.expected = expected
        self.actual = actual


async def run_pool(
    tasks: Sequence[In],
    fn: Callable[[In], MaybeAwaitable[Out]],
    workers: int = DEFAULT_WORKERS,
) -> list[Out]:
    """Map ``tasks`` through ``fn`` with at most ``workers`` calls in flight.

    Args:
        tasks: Items to be processed.
        fn: Callback mapping one item; may be sync or return an awaitable.
        workers: Maximum number of concurrent ``fn`` calls.

    Returns:
        ``[fn(task) for task in tasks]`` in task order.
    """

    if workers < 1:
        raise ValueError(f"Worker count must be >= 1, got {workers!r}.")
    if not tasks:
        return []

    queue: deque[tuple[int, In]] = deque(enumerate(tasks))
    slots: list[Out] = [_PENDING] * len(tasks)
    in_flight: dict[asyncio.Future[Out], int] = {}

    def schedule_next() -> None:
        index, task = queue.popleft()
        in_flight[asyncio.ensure_future(_call(fn, task))] = index

    for _ in range(min(workers, len(queue))):
        schedule_next()
    logger.debug("Pool started: %d tasks, %d workers.", len(tasks), len(in_flight))

    try:
        while in_flight:
            done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
            finished = sorted(done, key=in_flight.__getitem__)
            # Look for failures first so nothing is dispatched once the pool is aborting.
            for future in finished:
                error = future.exception()
                if error is not None:
                    index = in_flight.pop(future)
                    logger.debug("Task %d failed, aborting pool: %r", index, error)
                    raise error
            for future in finished:
                index = in_flight.pop(future)
                slots[index] = future.result()
                if queue:
                    schedule_next()
    finally:
        if in_flight:
            _detach(in_flight)

    logger.debug("Pool finished: %d tasks.", len(slots))
    return slots


async def run_chunked_pool(
    tasks: Sequence[In],
    fn: Callable[[list[In]], MaybeAwaitable[Sequence[Out]]],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    workers: int = DEFAULT_WORKERS,
) -> list[Out]:
    """``run_pool`` variant that hands ``fn`` batches of ``chunk_size`` tasks.

    ``fn`` must return exactly one output per input, in input order;
    ``BatchSizeMismatchError`` is raised otherwise.
    """

    async def map_batch(batch: list[In]) -> list[Out]:
        outputs = list(await _resolve(fn(batch)))
        if len(outputs) != len(batch):
            raise BatchSizeMismatchError(expected=len(batch), actual=len(outputs))
        return outputs

    batches = chunk(tasks, chunk_size)
    results = await run_pool(batches, map_batch, workers)
    return list(chain.from_iterable(results))


async def _call(fn: Callable[[In], MaybeAwaitable[Out]], task: In) -> Out:
    return await _resolve(fn(task))


async def _resolve(value: MaybeAwaitable[Out]) -> Out:
    if inspect.isawaitable(value):
        return await value
    return cast(Out, value)


def _detach(in_flight: dict[asyncio.Future[Out], int]) -> None:
    logger.debug("Detaching %d in-flight tasks after pool exit.", len(in_flight))
    for future, index in in_flight.items():
        _DETACHED.add(future)
        future.add_done_callback(_make_detached_callback(index))


def _make_detached_callback(index: int) -> Callable[[asyncio.Future[Any]], None]:
    def on_done(future: asyncio.Future[Any]) -> None:
        _DETACHED.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.warning(
                "Task %d failed after the pool had already settled: %r",
                index,
                error,
            )

    return on_done
