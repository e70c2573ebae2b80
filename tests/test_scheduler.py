from __future__ import annotations

import asyncio

from batch_monitor.monitor.scheduler import AsyncioScheduler


def test_asyncio_scheduler_repeats_until_cancelled() -> None:
    async def scenario() -> int:
        ticks: list[int] = []

        async def tick() -> None:
            ticks.append(1)

        handle = AsyncioScheduler().every(0.01, tick)
        await asyncio.sleep(0.055)
        handle.cancel()
        seen = len(ticks)
        await asyncio.sleep(0.03)
        assert len(ticks) == seen
        return seen

    assert asyncio.run(scenario()) >= 2


def test_asyncio_scheduler_once_fires_a_single_time() -> None:
    async def scenario() -> list[str]:
        fired: list[str] = []

        async def callback() -> None:
            fired.append("early")

        scheduler = AsyncioScheduler()
        scheduler.once(0.01, callback)
        cancelled = scheduler.once(0.01, callback)
        cancelled.cancel()
        await asyncio.sleep(0.05)
        return fired

    assert asyncio.run(scenario()) == ["early"]


def test_failing_callback_does_not_stop_interval() -> None:
    async def scenario() -> int:
        calls: list[int] = []

        async def flaky() -> None:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")

        handle = AsyncioScheduler().every(0.01, flaky)
        await asyncio.sleep(0.045)
        handle.cancel()
        return len(calls)

    assert asyncio.run(scenario()) >= 2
