"""
Cancellable timers on top of the asyncio event loop

call_later() and call_every() both hand back a ScheduledTask; the owner
keeps the handle and calls cancel() when it is done with it.
"""

import asyncio
from typing import Any, Callable, Optional


class ScheduledTask:
    """Handle to a pending one-shot or repeating callback"""

    def __init__(self):
        self._handle: Optional[Any] = None
        self.cancelled = False

    def cancel(self):
        """Stop the callback from firing again. Safe to call twice."""
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AsyncioTimers:
    """
    Schedules callbacks on the running event loop

    The loop is looked up when a timer is created, so one instance can be
    built before the loop starts (e.g. at app construction time).
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        """
        Run callback once after delay seconds

        Args:
            delay: Seconds to wait
            callback: Zero-argument callable

        Returns:
            ScheduledTask handle
        """
        task = ScheduledTask()

        def fire():
            task._handle = None
            if not task.cancelled:
                callback()

        task._handle = self.loop.call_later(delay, fire)
        return task

    def call_every(self, period: float, callback: Callable[[], None]) -> ScheduledTask:
        """
        Run callback every period seconds, first run one period from now

        Runs are pinned to start + n * period on the loop clock, so a slow
        callback does not push later runs back.
        """
        loop = self.loop
        task = ScheduledTask()
        start = loop.time()

        def fire(n: int):
            if task.cancelled:
                return
            task._handle = loop.call_at(start + (n + 1) * period, fire, n + 1)
            callback()

        task._handle = loop.call_at(start + period, fire, 1)
        return task
