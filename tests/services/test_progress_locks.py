"""InMemoryLockManager: serialization per pair and bounded bookkeeping."""

from __future__ import annotations

import asyncio
from uuid import uuid4

from completion_service.services.locks import InMemoryLockManager


def test_released_keys_are_dropped() -> None:
    locks = InMemoryLockManager()

    async def run() -> None:
        for _ in range(1000):
            async with locks.hold(uuid4(), uuid4()):
                assert locks.key_count == 1

    asyncio.run(run())

    assert locks.key_count == 0


def test_contended_key_kept_until_last_waiter_leaves() -> None:
    locks = InMemoryLockManager()
    user_id, course_id = uuid4(), uuid4()
    order: list[str] = []

    async def run() -> None:
        first_in = asyncio.Event()
        release_first = asyncio.Event()

        async def first() -> None:
            async with locks.hold(user_id, course_id):
                order.append("first")
                first_in.set()
                await release_first.wait()

        async def second() -> None:
            await first_in.wait()
            async with locks.hold(user_id, course_id):
                order.append("second")

        tasks = [asyncio.create_task(first()), asyncio.create_task(second())]
        await first_in.wait()
        # Let second() queue behind first().
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert locks.key_count == 1
        release_first.set()
        await asyncio.gather(*tasks)

    asyncio.run(run())

    assert order == ["first", "second"]
    assert locks.key_count == 0


def test_cancelled_waiter_does_not_leak_key() -> None:
    locks = InMemoryLockManager()
    user_id, course_id = uuid4(), uuid4()

    async def run() -> None:
        async with locks.hold(user_id, course_id):

            async def waiter() -> None:
                async with locks.hold(user_id, course_id):
                    pass

            task = asyncio.create_task(waiter())
            await asyncio.sleep(0)
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            assert locks.key_count == 1

    asyncio.run(run())

    assert locks.key_count == 0


def test_distinct_pairs_do_not_block_each_other() -> None:
    locks = InMemoryLockManager()
    course_id = uuid4()

    async def run() -> None:
        async with locks.hold(uuid4(), course_id):
            async with locks.hold(uuid4(), course_id):
                assert locks.key_count == 2

    asyncio.run(run())

    assert locks.key_count == 0
