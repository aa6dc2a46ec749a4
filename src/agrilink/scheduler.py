"""
Delayed, cancellable callbacks.

Components never sleep themselves: backoff delays, the connection watchdog and
the chart debounce window are all armed through a Scheduler so they can be
cancelled the moment they are superseded.
"""
import asyncio
import logging
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class LoopScheduler:
    """Scheduler backed by the running asyncio loop (delays in seconds)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class Debouncer:
    """
    Coalesces bursts of triggers into one call.

    Each trigger() cancels the pending call and re-arms it, so the callback
    runs once, `window` seconds after the last trigger of a burst.
    """

    def __init__(self, scheduler: Scheduler, window: float, callback: Callable[[], None]):
        self._scheduler = scheduler
        self.window = window
        self._callback = callback
        self._handle: Optional[Cancellable] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self):
        if self._handle is not None:
            self._handle.cancel()
        self._handle = self._scheduler.call_later(self.window, self._fire)

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self):
        self._handle = None
        self._callback()
