"""Periodic service tick.

At most one tick is ever scheduled: every (re)start cancels the outstanding
timer before arming a new one, and each firing re-arms itself with the
interval current at that moment.
"""

import asyncio
import logging
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class TickScheduler:
    """Owns the single outstanding tick timer of a service."""

    def __init__(
        self,
        hook: Callable[[], None],
        interval: float = 5.0,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.hook = hook
        self.interval = interval
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._running = False
        self.fired = 0

    def set_interval(self, interval: float) -> None:
        """Change the cadence; takes effect on the next reschedule."""
        self.interval = interval

    def start(self, interval: Optional[float] = None) -> None:
        """Cancel any pending tick and, if the interval is positive, arm a new one."""
        if interval is not None:
            self.interval = interval

        self._cancel()
        if self.interval <= 0:
            self._running = False
            return

        loop = self._loop or asyncio.get_running_loop()
        self._running = True
        self._handle = loop.call_later(self.interval, self._fire)
        logger.debug("tick armed in %.3fs", self.interval)

    def stop(self) -> None:
        """Cancel the pending tick, if any."""
        self._running = False
        self._cancel()

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.fired += 1
        try:
            self.hook()
        finally:
            # the hook may have stopped or re-armed us
            if self._running and self._handle is None:
                self.start()

    @property
    def pending(self) -> bool:
        return self._handle is not None
