"""Tests for per-record async locks."""

import asyncio

import pytest

from quill.lib.locks import RecordLocks


async def test_same_key_is_serialized(locks):
    events = []

    async def worker(name):
        async with locks.hold(1):
            events.append(f"{name}-start")
            await asyncio.sleep(0.01)
            events.append(f"{name}-end")

    await asyncio.gather(worker("a"), worker("b"))

    assert events == ["a-start", "a-end", "b-start", "b-end"]


async def test_different_keys_do_not_contend(locks):
    entered = asyncio.Event()

    async def hold_first():
        async with locks.hold(1):
            await asyncio.wait_for(entered.wait(), timeout=1)

    async def hold_second():
        async with locks.hold(2):
            entered.set()

    await asyncio.gather(hold_first(), hold_second())


async def test_lock_dropped_when_unused(locks):
    async with locks.hold(7):
        assert locks.is_locked(7)
        assert len(locks) == 1

    assert not locks.is_locked(7)
    assert len(locks) == 0


async def test_lock_released_on_error(locks):
    with pytest.raises(ValueError):
        async with locks.hold(3):
            raise ValueError("failed")

    assert len(locks) == 0


async def test_lock_released_on_cancellation(locks):
    started = asyncio.Event()

    async def hold_forever():
        async with locks.hold(5):
            started.set()
            await asyncio.sleep(60)

    task = asyncio.create_task(hold_forever())
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(locks) == 0


def test_registries_are_independent():
    assert RecordLocks() is not RecordLocks()
    assert len(RecordLocks()) == 0
