"""
Jhandi Munda - Server Clock Synchronisation

Tracks the offset between the local clock and the server's clock so
every time comparison in the engine happens in server time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from jhandi_munda.engine.base import Cancellable, Scheduler
from jhandi_munda.errors import SnapshotFetchError

logger = logging.getLogger(__name__)


def wall_clock_ms() -> int:
    """Local epoch time in milliseconds."""
    return int(time.time() * 1000)


class TimeSync:
    """Maintains ``server_time() = local_time() + offset``.

    The offset is refreshed from every message that carries ``serverNow``
    and, while the push channel is open, from a periodic pull so that
    long quiet stretches do not let the two clocks drift apart.
    """

    def __init__(self, clock: Callable[[], int] = wall_clock_ms) -> None:
        self._clock = clock
        self._offset_ms = 0
        self._interval: Cancellable | None = None
        self._pending: asyncio.Task | None = None

    @property
    def offset_ms(self) -> int:
        return self._offset_ms

    def local_time(self) -> int:
        return self._clock()

    def server_time(self) -> int:
        """Current server time estimate in epoch milliseconds."""
        return self._clock() + self._offset_ms

    def update(self, server_now: int) -> None:
        """Record the server's clock reading as of now."""
        self._offset_ms = server_now - self._clock()

    # -- Periodic resync ---------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._interval is not None

    def start_periodic(
        self,
        scheduler: Scheduler,
        interval_ms: int,
        fetch_server_now: Callable[[], Awaitable[int]],
    ) -> None:
        """Pull a fresh ``serverNow`` every ``interval_ms`` until stopped.

        Restarting replaces any interval already running.
        """
        self.stop_periodic()

        def tick() -> None:
            self._interval = scheduler.call_later(interval_ms / 1000, tick)
            if self._pending is None or self._pending.done():
                self._pending = asyncio.ensure_future(self.resync(fetch_server_now))

        self._interval = scheduler.call_later(interval_ms / 1000, tick)
        logger.debug("Time sync every %dms", interval_ms)

    def stop_periodic(self) -> None:
        if self._interval is not None:
            self._interval.cancel()
            self._interval = None
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def resync(self, fetch_server_now: Callable[[], Awaitable[int]]) -> bool:
        """Fetch one time reference. Failures are logged; the next tick retries."""
        try:
            server_now = await fetch_server_now()
        except SnapshotFetchError as exc:
            logger.warning("Time sync failed: %s", exc)
            return False
        self.update(server_now)
        logger.debug("Time sync offset now %dms", self._offset_ms)
        return True
