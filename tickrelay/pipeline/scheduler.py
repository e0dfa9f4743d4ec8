"""Timer primitives used by the connection manager and the batcher.

Components never hold raw timer handles. They own :class:`OneShotTimer` or
:class:`PeriodicTimer` objects, which enforce that at most one callback is
pending per timer. All timers are created through a :class:`Scheduler` so the
runtime can use the asyncio loop and tests can use a manual clock.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

LOGGER = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Minimal clock + delayed-call interface."""

    def time(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopScheduler:
    """:class:`Scheduler` backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def time(self) -> float:
        return self._loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(delay, callback)


class OneShotTimer:
    """Arm-once timer: arming while armed is a no-op.

    The armed flag is cleared before the callback runs, so the callback may
    re-arm the same timer.
    """

    def __init__(self, scheduler: Scheduler, name: str = "timer") -> None:
        self._scheduler = scheduler
        self._name = name
        self._handle: Optional[TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self, delay: float, callback: Callable[[], None]) -> bool:
        """Schedule ``callback`` after ``delay`` seconds; False if already armed."""

        if self._handle is not None:
            return False

        def _fire() -> None:
            self._handle = None
            callback()

        self._handle = self._scheduler.call_later(delay, _fire)
        return True

    def cancel(self) -> bool:
        """Disarm the timer; returns whether a callback was pending."""

        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True


class PeriodicTimer:
    """Repeating timer built on :class:`OneShotTimer`.

    Exceptions raised by the callback are logged and the timer keeps running.
    """

    def __init__(self, scheduler: Scheduler, name: str = "periodic") -> None:
        self._timer = OneShotTimer(scheduler, name)
        self._name = name
        self._interval = 0.0
        self._callback: Optional[Callable[[], None]] = None

    @property
    def running(self) -> bool:
        return self._callback is not None

    def start(self, interval: float, callback: Callable[[], None]) -> bool:
        if self._callback is not None:
            return False
        self._interval = interval
        self._callback = callback
        self._timer.arm(interval, self._tick)
        return True

    def stop(self) -> bool:
        was_running = self._callback is not None
        self._callback = None
        self._timer.cancel()
        return was_running

    def _tick(self) -> None:
        callback = self._callback
        if callback is None:
            return
        try:
            callback()
        except Exception:
            LOGGER.exception("Periodic callback failed", extra={"timer": self._name})
        if self._callback is callback:
            self._timer.arm(self._interval, self._tick)


__all__ = ["Scheduler", "TimerHandle", "LoopScheduler", "OneShotTimer", "PeriodicTimer"]
