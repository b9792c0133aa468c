"""Cancellable repeating timers that drive the quiz countdown."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

__all__ = [
    "RepeatingTimer",
    "TimerFactory",
    "AsyncioRepeatingTimer",
    "asyncio_timer_factory",
]

_LOGGER = logging.getLogger("study_tracker.quiz.timer")


class RepeatingTimer(Protocol):
    @property
    def cancelled(self) -> bool: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], RepeatingTimer]


class AsyncioRepeatingTimer:
    """Invoke ``callback`` every ``interval`` seconds on an asyncio loop.

    The next call is scheduled only after the previous one returns, so a
    cancelled timer never fires again. An exception raised by the callback
    is logged and stops the timer.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._callback = callback
        self._loop = loop or asyncio.get_running_loop()
        self._cancelled = False
        self._handle: asyncio.TimerHandle | None = None
        self._schedule()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        if self._cancelled:
            return
        self._handle = self._loop.call_later(self._interval, self._fire)

    def _fire(self) -> None:
        self._handle = None
        if self._cancelled:
            return
        try:
            self._callback()
        except Exception:
            _LOGGER.exception("Timer callback failed; stopping timer")
            self.cancel()
            return
        self._schedule()


def asyncio_timer_factory(
    interval: float, callback: Callable[[], None]
) -> RepeatingTimer:
    """Default factory bound to the running event loop."""

    return AsyncioRepeatingTimer(interval, callback)
