"""Timer abstraction used by the task monitor to drive polling."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

PollCallback = Callable[[], Awaitable[None]]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class PollScheduler(Protocol):
    def every(self, interval: float, callback: PollCallback) -> TimerHandle: ...

    def once(self, delay: float, callback: PollCallback) -> TimerHandle: ...


class _TaskHandle:
    def __init__(self, task: asyncio.Task) -> None:
        self._task = task

    def cancel(self) -> None:
        self._task.cancel()


class AsyncioScheduler:
    """Schedules poll callbacks as tasks on the running event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def _create_task(self, coro: Awaitable[None]) -> asyncio.Task:
        loop = self._loop or asyncio.get_running_loop()
        return loop.create_task(coro)

    async def _run_every(self, interval: float, callback: PollCallback) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await callback()
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("Scheduled poll callback failed")

    async def _run_once(self, delay: float, callback: PollCallback) -> None:
        await asyncio.sleep(delay)
        await callback()

    def every(self, interval: float, callback: PollCallback) -> TimerHandle:
        return _TaskHandle(self._create_task(self._run_every(interval, callback)))

    def once(self, delay: float, callback: PollCallback) -> TimerHandle:
        return _TaskHandle(self._create_task(self._run_once(delay, callback)))
