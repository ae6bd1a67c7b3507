import asyncio

import pytest

from gatekeeper.services.scheduler import KeyedScheduler


@pytest.mark.asyncio
async def test_callback_runs_after_delay():
    scheduler = KeyedScheduler()
    fired = []

    async def callback():
        fired.append("done")

    scheduler.schedule("k", 0.01, callback)
    assert scheduler.is_pending("k")
    await asyncio.sleep(0.05)
    assert fired == ["done"]
    assert not scheduler.is_pending("k")


@pytest.mark.asyncio
async def test_rescheduling_replaces_pending_timer():
    scheduler = KeyedScheduler()
    fired = []

    async def first():
        fired.append("first")

    async def second():
        fired.append("second")

    old = scheduler.schedule("k", 0.02, first)
    scheduler.schedule("k", 0.02, second)
    await asyncio.sleep(0.08)
    assert old.cancelled()
    assert fired == ["second"]


@pytest.mark.asyncio
async def test_cancel():
    scheduler = KeyedScheduler()
    fired = []

    async def callback():
        fired.append("x")

    scheduler.schedule("k", 0.01, callback)
    assert scheduler.cancel("k")
    assert not scheduler.cancel("k")
    await asyncio.sleep(0.03)
    assert fired == []


@pytest.mark.asyncio
async def test_keys_are_independent_and_errors_are_contained():
    scheduler = KeyedScheduler()
    fired = []

    async def boom():
        raise RuntimeError("boom")

    async def ok():
        fired.append("ok")

    scheduler.schedule("a", 0.01, boom)
    scheduler.schedule("b", 0.01, ok)
    await asyncio.sleep(0.05)
    assert fired == ["ok"]
    assert scheduler.pending_keys() == []


@pytest.mark.asyncio
async def test_cancel_all():
    scheduler = KeyedScheduler()

    async def callback():
        raise AssertionError("should not run")

    scheduler.schedule("a", 1, callback)
    scheduler.schedule("b", 1, callback)
    await scheduler.cancel_all()
    assert scheduler.pending_keys() == []


@pytest.mark.asyncio
async def test_cancel_with_stale_task_leaves_newer_timer():
    scheduler = KeyedScheduler()
    fired = []

    async def callback():
        fired.append("newer")

    older = scheduler.schedule("k", 10, callback)
    newer = scheduler.schedule("k", 0.02, callback)

    assert scheduler.cancel("k", older) is False
    assert scheduler.is_pending("k")
    await asyncio.sleep(0.06)
    assert older.cancelled()
    assert fired == ["newer"]
    assert newer.done()


@pytest.mark.asyncio
async def test_cancel_with_matching_task():
    scheduler = KeyedScheduler()

    async def callback():
        raise AssertionError("should not fire")

    task = scheduler.schedule("k", 0.02, callback)
    assert scheduler.cancel("k", task) is True
    await asyncio.sleep(0.05)
    assert task.cancelled()
    assert not scheduler.is_pending("k")
