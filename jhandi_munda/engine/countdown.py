"""
Jhandi Munda - Countdown Scheduler

Drives the "time remaining" display toward a single target timestamp.
Each tick recomputes everything from absolute server time, so a missed or
late tick only costs granularity, never accuracy.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Protocol

from jhandi_munda.engine.base import (
    GET_READY,
    Cancellable,
    CountdownFrame,
    CountdownPhase,
    ProgressBand,
    Scheduler,
)
from jhandi_munda.engine.time_sync import TimeSync

logger = logging.getLogger(__name__)


class TickSource(Protocol):
    """Something that calls back once, soon, and can be revoked."""

    def schedule(self, callback: Callable[[], None]) -> Cancellable: ...


class IntervalTickSource:
    """Fixed-interval ticks; the coarse cadence used while hidden."""

    def __init__(self, scheduler: Scheduler, interval_ms: int = 100) -> None:
        self._scheduler = scheduler
        self.interval_ms = interval_ms

    def schedule(self, callback: Callable[[], None]) -> Cancellable:
        return self._scheduler.call_later(self.interval_ms / 1000, callback)


class FrameTickSource(IntervalTickSource):
    """One tick per display refresh (~60 Hz) while the display is visible."""

    def __init__(self, scheduler: Scheduler, frame_interval_ms: int = 16) -> None:
        super().__init__(scheduler, frame_interval_ms)


def compute_frame(
    target: int,
    now: int,
    base_duration_ms: int,
    phase: CountdownPhase,
) -> CountdownFrame:
    """
    Compute one countdown frame.

    The denominator never drops below the remaining time, so progress
    stays within [0, 1] even when the server extends a round.

    Args:
        target: Server time being counted toward
        now: Current server time
        base_duration_ms: Full length of the countdown
        phase: Which round edge is being counted toward

    Returns:
        The frame to display
    """
    remaining = max(0, target - now)
    duration = max(1, base_duration_ms, remaining)
    remaining_ratio = remaining / duration
    seconds_left = max(0, math.ceil(remaining / 1000))

    if 0 < seconds_left <= 3:
        status_text = GET_READY
    else:
        status_text = phase.label

    return CountdownFrame(
        target=target,
        remaining_ms=remaining,
        progress=1 - remaining_ratio,
        seconds_left=seconds_left,
        band=ProgressBand.for_ratio(remaining_ratio),
        status_text=status_text,
    )


class CountdownScheduler:
    """Ticks toward one target at a time.

    Exactly one tick handle is alive at any moment; starting a countdown
    revokes the previous one first. Ticks carry a generation number so a
    callback belonging to a superseded countdown does nothing.
    """

    def __init__(
        self,
        time_sync: TimeSync,
        foreground: TickSource,
        background: TickSource,
        *,
        hidden: bool = False,
        on_visibility_regained: Callable[[], None] | None = None,
    ) -> None:
        self._time_sync = time_sync
        self._foreground = foreground
        self._background = background
        self._hidden = hidden
        self.on_visibility_regained = on_visibility_regained

        self._handle: Cancellable | None = None
        self._generation = 0
        self._target: int | None = None
        self._phase: CountdownPhase | None = None
        self._base_duration_ms = 1
        self._on_tick: Callable[[CountdownFrame], None] | None = None
        self._on_expire: Callable[[], None] | None = None
        self.last_frame: CountdownFrame | None = None

    @property
    def target(self) -> int | None:
        return self._target

    @property
    def phase(self) -> CountdownPhase | None:
        return self._phase

    @property
    def is_active(self) -> bool:
        return self._target is not None

    @property
    def hidden(self) -> bool:
        return self._hidden

    def start(
        self,
        target: int,
        phase: CountdownPhase,
        *,
        total_ms: int | None = None,
        on_tick: Callable[[CountdownFrame], None] | None = None,
        on_expire: Callable[[], None] | None = None,
    ) -> CountdownFrame | None:
        """Begin counting toward ``target`` and compute the first frame now."""
        self.cancel()
        now = self._time_sync.server_time()
        if total_ms is None:
            total_ms = target - now
        self._generation += 1
        self._target = target
        self._phase = phase
        self._base_duration_ms = max(1, total_ms)
        self._on_tick = on_tick
        self._on_expire = on_expire
        logger.debug("Countdown to %d (%s), %dms left", target, phase.name, target - now)
        return self._tick(self._generation)

    def cancel(self) -> None:
        """Revoke the pending tick and forget the target."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._generation += 1
        self._target = None
        self._phase = None
        self._on_tick = None
        self._on_expire = None

    def frame(self) -> CountdownFrame | None:
        """Recompute the current frame without ticking."""
        if self._target is None or self._phase is None:
            return None
        return compute_frame(
            self._target,
            self._time_sync.server_time(),
            self._base_duration_ms,
            self._phase,
        )

    def set_hidden(self, hidden: bool) -> None:
        """Switch cadence when the display is hidden or shown again.

        Becoming visible first asks for a reconciliation, since events may
        have been missed while ticking coarsely, then resumes frame ticks.
        """
        if hidden == self._hidden:
            return
        self._hidden = hidden
        if not hidden and self.on_visibility_regained is not None:
            self.on_visibility_regained()
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            self._queue(self._generation)

    def _source(self) -> TickSource:
        return self._background if self._hidden else self._foreground

    def _queue(self, generation: int) -> None:
        self._handle = self._source().schedule(lambda: self._tick(generation))

    def _tick(self, generation: int) -> CountdownFrame | None:
        if generation != self._generation:
            return self.last_frame  # stale
        self._handle = None
        frame = self.frame()
        self.last_frame = frame
        if self._on_tick is not None:
            self._on_tick(frame)
        if not frame.expired:
            self._queue(generation)
            return frame

        on_expire = self._on_expire
        self._target = None
        self._phase = None
        self._on_tick = None
        self._on_expire = None
        self._generation += 1
        if on_expire is not None:
            on_expire()
        return frame
