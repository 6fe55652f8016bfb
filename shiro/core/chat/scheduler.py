"""Timer primitives for debounced, single-threaded scheduling."""

from __future__ import annotations

import abc
import asyncio
from typing import Callable, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(abc.ABC):
    """Source of time and delayed callbacks on one event loop."""

    @abc.abstractmethod
    def time(self) -> float:
        """Return the scheduler's monotonic clock in seconds."""

    @abc.abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds unless cancelled."""


class LoopScheduler(Scheduler):
    """Scheduler backed by an ``asyncio`` event loop.

    Without an explicit loop the running loop is looked up at call time, so
    the scheduler can be built before the loop starts.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def time(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self.loop.call_later(delay, callback)


class CancellableTimer:
    """A single owned timer handle that is replaced, never leaked."""

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._handle: Optional[TimerHandle] = None
        self._token: Optional[object] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        self.cancel()
        token = object()

        def _fire() -> None:
            # A superseded handle that still fires must not touch the new one.
            if self._token is not token:
                return
            self._handle = None
            self._token = None
            callback()

        self._token = token
        self._handle = self._scheduler.call_later(delay, _fire)

    def cancel(self) -> None:
        handle, self._handle = self._handle, None
        self._token = None
        if handle is not None:
            handle.cancel()


__all__ = ["CancellableTimer", "LoopScheduler", "Scheduler", "TimerHandle"]
