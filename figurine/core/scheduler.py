"""Delayed-callback scheduling with cancellable handles.

Architectural role:
    Provides the only suspension primitive the engine uses for wait-for-image
    expiry and poll rescheduling. Engine code never sleeps; it asks a
    `Scheduler` to run a coroutine function after a relative delay.

Execution model:
    `AsyncioScheduler` runs on the host's event loop. Each due callback runs as
    its own task, so callbacks for different jobs proceed independently while
    one job's chain is strictly sequential (the next poll is only scheduled
    once the previous one has finished).

Cancellation:
    `ScheduledCall.cancel()` prevents a callback that has not started yet.
    A callback that is already running is left alone; callers guard its
    effects by re-checking their own state when it resumes.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Protocol


logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]


class ScheduledCall:
    """Cancellable handle for one delayed callback."""

    def __init__(self, delay: float):
        self.delay = delay
        self._cancelled = False
        self._timer: asyncio.TimerHandle | None = None

    def cancel(self) -> None:
        self._cancelled = True
        if self._timer is not None:
            self._timer.cancel()

    def cancelled(self) -> bool:
        return self._cancelled


class Scheduler(Protocol):
    """Minimal scheduling interface required by the engine."""

    def call_later(self, delay: float, callback: Callback) -> ScheduledCall:
        """Run `callback()` after `delay` seconds unless cancelled first."""
        ...

    def now(self) -> float:
        """Monotonic clock in seconds used for elapsed-time reporting."""
        ...


class AsyncioScheduler:
    """`Scheduler` backed by `loop.call_later` on the running event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._tasks: set[asyncio.Task] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callback) -> ScheduledCall:
        handle = ScheduledCall(delay)
        loop = self._get_loop()
        handle._timer = loop.call_later(max(0.0, delay), self._spawn, handle, callback)
        return handle

    def now(self) -> float:
        return time.monotonic()

    @property
    def running(self) -> int:
        """Number of callbacks currently executing."""
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for callbacks that are already executing to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, handle: ScheduledCall, callback: Callback) -> None:
        if handle.cancelled():
            return
        task = self._get_loop().create_task(callback())
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Scheduled callback failed", exc_info=exc)
