"""Inference worker pool."""

import asyncio
import threading

import pytest

from core.threading import WorkerPool


@pytest.fixture
def pool():
    pool = WorkerPool(max_workers=1, name="test_pool")
    yield pool
    pool.shutdown(wait=True)


@pytest.mark.asyncio
async def test_submit_async_returns_result(pool):
    assert await pool.submit_async(sum, [1, 2, 3]) == 6
    stats = pool.get_stats()
    assert stats["completed_tasks"] == 1
    assert stats["pending_tasks"] == 0


@pytest.mark.asyncio
async def test_submit_async_propagates_errors(pool):
    def boom():
        raise RuntimeError("model crashed")

    with pytest.raises(RuntimeError):
        await pool.submit_async(boom)
    assert pool.get_stats()["failed_tasks"] == 1


def test_submit_returns_future(pool):
    assert pool.submit(lambda: 42).result(timeout=5) == 42


@pytest.mark.asyncio
async def test_cancelled_caller_drops_queued_work(pool):
    release = threading.Event()
    ran = []

    first = asyncio.ensure_future(pool.submit_async(release.wait, 5))
    second = asyncio.ensure_future(pool.submit_async(ran.append, "second"))
    await asyncio.sleep(0.05)
    assert pool.get_stats()["pending_tasks"] == 1

    second.cancel()
    with pytest.raises(asyncio.CancelledError):
        await second
    release.set()

    assert await first is True
    assert ran == []
    stats = pool.get_stats()
    assert stats["completed_tasks"] == 1
    assert stats["pending_tasks"] == 0
    assert stats["running_tasks"] == 0
