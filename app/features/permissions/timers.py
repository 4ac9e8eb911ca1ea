"""
Timer abstraction used to schedule permission fetch retries.

Stores never touch the event loop directly; they get a Scheduler, so tests can
substitute one that records delays and fires callbacks on demand.
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional, Protocol


AsyncCallback = Callable[..., Awaitable[None]]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: AsyncCallback, *args: Any) -> TimerHandle: ...


class _AsyncioTimer:
    def __init__(self, scheduler: "AsyncioScheduler"):
        self._scheduler = scheduler
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()


class AsyncioScheduler:
    """Runs async callbacks on the running event loop after a delay in seconds."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def call_later(self, delay: float, callback: AsyncCallback, *args: Any) -> _AsyncioTimer:
        loop = asyncio.get_running_loop()
        timer = _AsyncioTimer(self)

        def fire() -> None:
            if timer.cancelled:
                return
            task = loop.create_task(callback(*args))
            timer._task = task
            # keep a strong reference until the retry settles
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        timer._handle = loop.call_later(delay, fire)
        return timer
