from __future__ import annotations

import asyncio

import allure
import pytest

from workpool.pool import BatchSizeMismatchError, WorkPoolError, run_chunked_pool

pytestmark = [
    allure.epic("Concurrency Primitives"),
    allure.feature("Chunked Worker Pool"),
]


@pytest.mark.asyncio
async def test_batches_are_mapped_and_flattened_in_order() -> None:
    seen: list[list[int]] = []

    async def batch_fn(batch: list[int]) -> list[int]:
        seen.append(batch)
        await asyncio.sleep(0.001 * (5 - batch[0]))
        return [item * 10 for item in batch]

    results = await run_chunked_pool([1, 2, 3, 4, 5], batch_fn, chunk_size=2)

    assert results == [10, 20, 30, 40, 50]
    assert seen == [[1, 2], [3, 4], [5]]


@pytest.mark.asyncio
async def test_sync_batch_function_returning_tuple() -> None:
    results = await run_chunked_pool(
        ["a", "b", "c"],
        lambda batch: tuple(item.upper() for item in batch),
        chunk_size=2,
        workers=1,
    )
    assert results == ["A", "B", "C"]


@pytest.mark.asyncio
async def test_default_chunk_size_is_ten() -> None:
    sizes: list[int] = []

    async def batch_fn(batch: list[int]) -> list[int]:
        sizes.append(len(batch))
        return batch

    await run_chunked_pool(list(range(25)), batch_fn)

    assert sorted(sizes) == [5, 10, 10]


@pytest.mark.asyncio
async def test_empty_tasks_skip_batch_function() -> None:
    async def batch_fn(batch: list[int]) -> list[int]:
        raise AssertionError("must not be called")

    assert await run_chunked_pool([], batch_fn) == []


@pytest.mark.asyncio
async def test_batch_size_mismatch_fails_fast() -> None:
    async def batch_fn(batch: list[int]) -> list[int]:
        return batch[:-1]

    with pytest.raises(BatchSizeMismatchError) as caught:
        await run_chunked_pool([1, 2, 3], batch_fn, chunk_size=3)

    assert isinstance(caught.value, WorkPoolError)
    assert caught.value.expected == 3
    assert caught.value.actual == 2


@pytest.mark.asyncio
async def test_batch_failure_propagates() -> None:
    error = OSError("disk")

    async def batch_fn(batch: list[int]) -> list[int]:
        raise error

    with pytest.raises(OSError) as caught:
        await run_chunked_pool([1, 2], batch_fn, chunk_size=1)

    assert caught.value is error
