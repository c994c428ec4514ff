from __future__ import annotations

import asyncio
import logging

import allure
import pytest

from workpool.pool import run_pool

pytestmark = [
    allure.epic("Concurrency Primitives"),
    allure.feature("Worker Pool"),
]


class InFlightTracker:
    """Async mapper that records concurrency and call order."""

    def __init__(self) -> None:
        self.current = 0
        self.peak = 0
        self.calls: list[int] = []

    async def __call__(self, task: int) -> int:
        self.calls.append(task)
        self.current += 1
        self.peak = max(self.peak, self.current)
        try:
            # Later tasks finish first to scramble completion order.
            await asyncio.sleep(0.001 * ((7 - task) % 4))
            return task * 2
        finally:
            self.current -= 1


@pytest.mark.asyncio
@pytest.mark.parametrize("workers", [1, 2, 3, 10, 100])
async def test_results_follow_task_order(workers: int) -> None:
    tracker = InFlightTracker()
    tasks = list(range(17))

    results = await run_pool(tasks, tracker, workers)

    assert results == [task * 2 for task in tasks]
    assert tracker.peak <= workers


@pytest.mark.asyncio
async def test_in_flight_count_reaches_but_never_exceeds_workers() -> None:
    tracker = InFlightTracker()

    await run_pool(list(range(20)), tracker, 4)

    assert tracker.peak == 4


@pytest.mark.asyncio
async def test_each_task_is_dispatched_once_in_task_order() -> None:
    tracker = InFlightTracker()
    tasks = list(range(12))

    await run_pool(tasks, tracker, 3)

    assert tracker.calls == tasks


@pytest.mark.asyncio
async def test_empty_tasks_return_immediately_without_calling_fn() -> None:
    calls: list[object] = []

    async def fn(task: object) -> object:
        calls.append(task)
        return task

    assert await run_pool([], fn) == []
    assert calls == []


@pytest.mark.asyncio
async def test_sync_callbacks_are_supported() -> None:
    assert await run_pool(["a", "bb", "ccc"], len, 2) == [1, 2, 3]


@pytest.mark.asyncio
async def test_duplicate_tasks_keep_their_own_results() -> None:
    call_number = 0

    async def fn(task: str) -> tuple[str, int]:
        nonlocal call_number
        number = call_number
        call_number += 1
        # First call finishes last.
        await asyncio.sleep(0.005 * (3 - number))
        return task, number

    results = await run_pool(["same", "same", "same"], fn, 3)

    assert results == [("same", 0), ("same", 1), ("same", 2)]


@pytest.mark.asyncio
async def test_equal_but_distinct_objects_are_not_confused() -> None:
    tasks = [{"id": 1}, {"id": 1}, {"id": 2}]

    async def fn(task: dict[str, int]) -> int:
        await asyncio.sleep(0)
        return id(task)

    assert await run_pool(tasks, fn, 2) == [id(task) for task in tasks]


@pytest.mark.asyncio
async def test_first_failure_propagates_unchanged_and_stops_dispatch() -> None:
    boom = RuntimeError("boom")
    calls: list[int] = []

    async def fn(task: int) -> int:
        calls.append(task)
        if task == 1:
            raise boom
        await asyncio.sleep(0.01)
        return task

    with pytest.raises(RuntimeError) as caught:
        await run_pool(list(range(10)), fn, 2)

    assert caught.value is boom
    assert calls == [0, 1]


@pytest.mark.asyncio
async def test_in_flight_tasks_finish_after_failure() -> None:
    finished: list[int] = []

    async def fn(task: int) -> int:
        if task == 0:
            raise ValueError("first")
        await asyncio.sleep(0.01)
        finished.append(task)
        return task

    with pytest.raises(ValueError, match="first"):
        await run_pool([0, 1], fn, 2)

    await asyncio.sleep(0.05)
    assert finished == [1]


@pytest.mark.asyncio
async def test_late_failures_are_logged_and_dropped(caplog: pytest.LogCaptureFixture) -> None:
    async def fn(task: int) -> int:
        if task == 0:
            raise ValueError("first")
        await asyncio.sleep(0.01)
        raise KeyError("late")

    with caplog.at_level(logging.WARNING, logger="workpool.pool"):
        with pytest.raises(ValueError, match="first"):
            await run_pool([0, 1], fn, 2)
        await asyncio.sleep(0.05)

    assert any("already settled" in record.getMessage() for record in caplog.records)
    assert any("late" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
@pytest.mark.parametrize("workers", [0, -3])
async def test_rejects_non_positive_workers(workers: int) -> None:
    with pytest.raises(ValueError, match="Worker count must be >= 1"):
        await run_pool([1], lambda task: task, workers)


@pytest.mark.asyncio
async def test_no_dispatch_when_failure_lands_with_success_in_same_step() -> None:
    calls: list[int] = []

    async def fn(task: int) -> int:
        calls.append(task)
        if task == 1:
            raise ValueError("second")
        return task

    with pytest.raises(ValueError, match="second"):
        await run_pool([0, 1, 2, 3], fn, 2)

    await asyncio.sleep(0.01)
    assert calls == [0, 1]


@pytest.mark.asyncio
async def test_cancelled_caller_leaves_in_flight_tasks_running() -> None:
    started: list[int] = []
    finished: list[int] = []

    async def fn(task: int) -> int:
        started.append(task)
        await asyncio.sleep(0.02)
        finished.append(task)
        return task

    runner = asyncio.ensure_future(run_pool([0, 1, 2], fn, 2))
    await asyncio.sleep(0.005)
    runner.cancel()

    with pytest.raises(asyncio.CancelledError):
        await runner

    await asyncio.sleep(0.05)
    assert finished == [0, 1]
    assert started == [0, 1]
