"""Unit tests for per-key reconciliation locks."""

import asyncio

import pytest

from managed_serviceaccount.utils.keyed_lock import KeyedLock


class TestKeyedLock:
    @pytest.mark.asyncio
    async def test_same_key_is_serialised(self):
        locks = KeyedLock()
        events = []
        first_entered = asyncio.Event()

        async def first():
            async with locks.hold(("ns", "a")):
                events.append("first-start")
                first_entered.set()
                await asyncio.sleep(0.01)
                events.append("first-end")

        async def second():
            await first_entered.wait()
            async with locks.hold(("ns", "a")):
                events.append("second")

        await asyncio.gather(first(), second())

        assert events == ["first-start", "first-end", "second"]

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        locks = KeyedLock()
        both_inside = asyncio.Event()
        inside = 0

        async def worker(key):
            nonlocal inside
            async with locks.hold(key):
                inside += 1
                if inside == 2:
                    both_inside.set()
                await asyncio.wait_for(both_inside.wait(), timeout=1)

        await asyncio.gather(worker(("ns", "a")), worker(("ns", "b")))

        assert both_inside.is_set()

    @pytest.mark.asyncio
    async def test_lock_dropped_when_idle(self):
        locks = KeyedLock()

        async with locks.hold("key"):
            assert locks.locked("key")
            assert len(locks) == 1

        assert not locks.locked("key")
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self):
        locks = KeyedLock()

        with pytest.raises(RuntimeError):
            async with locks.hold("key"):
                raise RuntimeError("boom")

        assert len(locks) == 0
        async with locks.hold("key"):
            pass

    @pytest.mark.asyncio
    async def test_lock_kept_while_waiters_remain(self):
        locks = KeyedLock()
        release = asyncio.Event()
        entered = asyncio.Event()

        async def holder():
            async with locks.hold("key"):
                entered.set()
                await release.wait()

        async def waiter():
            await entered.wait()
            async with locks.hold("key"):
                pass

        tasks = [asyncio.create_task(holder()), asyncio.create_task(waiter())]
        await entered.wait()
        await asyncio.sleep(0)

        assert len(locks) == 1
        release.set()
        await asyncio.gather(*tasks)
        assert len(locks) == 0
