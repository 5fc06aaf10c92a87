"""
Jhandi Munda - Test Configuration and Fixtures

Manual clock/scheduler standing in for the event loop's timers, and
sample wire payloads shared across test modules.
"""

import json
from typing import Any, Callable

import pytest

from jhandi_munda.engine.countdown import (
    CountdownScheduler,
    FrameTickSource,
    IntervalTickSource,
)
from jhandi_munda.engine.round_machine import RoundStateMachine
from jhandi_munda.engine.time_sync import TimeSync
from jhandi_munda.realtime.events import EventPayload, decode_event


# =============================================================================
# MANUAL SCHEDULER
# =============================================================================

class ManualHandle:
    """Timer handle returned by ManualScheduler.call_later."""

    def __init__(self, when: int, seq: int, callback: Callable, args: tuple) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic replacement for loop.call_later plus a local clock.

    Time only moves when a test calls advance(); due callbacks run in
    (due time, insertion order) and see the clock at their due time.
    """

    def __init__(self, start_ms: int = 0) -> None:
        self.now_ms = start_ms
        self._handles: list[ManualHandle] = []
        self._seq = 0

    def clock(self) -> int:
        return self.now_ms

    def call_later(self, delay: float, callback: Callable, *args: Any) -> ManualHandle:
        handle = ManualHandle(self.now_ms + round(delay * 1000), self._seq, callback, args)
        self._seq += 1
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> list[ManualHandle]:
        return [h for h in self._handles if not h.cancelled]

    def advance(self, ms: int) -> None:
        self.advance_to(self.now_ms + ms)

    def advance_to(self, target_ms: int) -> None:
        while True:
            due = [h for h in self.pending if h.when <= target_ms]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self._handles.remove(handle)
            self.now_ms = max(self.now_ms, handle.when)
            handle.callback(*handle.args)
        self.now_ms = target_ms


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def time_sync(scheduler: ManualScheduler) -> TimeSync:
    return TimeSync(scheduler.clock)


@pytest.fixture
def countdown(scheduler: ManualScheduler, time_sync: TimeSync) -> CountdownScheduler:
    return CountdownScheduler(
        time_sync,
        FrameTickSource(scheduler, frame_interval_ms=10),
        IntervalTickSource(scheduler, interval_ms=100),
    )


@pytest.fixture
def machine(
    scheduler: ManualScheduler, time_sync: TimeSync, countdown: CountdownScheduler
) -> RoundStateMachine:
    return RoundStateMachine(
        time_sync,
        countdown,
        scheduler,
        settle_delay_ms=3600,
        waiting_grace_ms=2000,
        cancel_fallback_ms=30000,
    )


# =============================================================================
# WIRE PAYLOADS
# =============================================================================

LAST_DICE = [2, 4, 6, 1, 3, 5]
ROUND_DICE = [6, 6, 1, 2, 3, 4]


def make_event(name: str, **fields: Any) -> EventPayload:
    """Decode an event exactly as the channel would."""
    return decode_event(name, json.dumps(fields))


@pytest.fixture
def last_outcome_body() -> dict[str, Any]:
    return {"diceValues": LAST_DICE, "updatedAt": 500, "roundId": "r-0"}


@pytest.fixture
def scheduled_snapshot_body(last_outcome_body: dict[str, Any]) -> dict[str, Any]:
    return {
        "state": "SCHEDULED",
        "chatId": 123,
        "startAt": 5000,
        "endAt": 8000,
        "totalMs": 5000,
        "remainingMs": 4000,
        "lastOutcome": last_outcome_body,
        "serverNow": 1000,
    }


@pytest.fixture
def started_snapshot_body(last_outcome_body: dict[str, Any]) -> dict[str, Any]:
    return {
        "state": "STARTED_OR_REVEALED",
        "chatId": 123,
        "round": {
            "id": "r-1",
            "name": None,
            "startAt": 5000,
            "endAt": 8000,
            "diceValues": None,
        },
        "lastOutcome": last_outcome_body,
        "serverNow": 6000,
    }


@pytest.fixture
def idle_snapshot_body(last_outcome_body: dict[str, Any]) -> dict[str, Any]:
    return {
        "state": "IDLE",
        "chatId": 123,
        "lastOutcome": last_outcome_body,
        "serverNow": 1000,
    }


@pytest.fixture
def event() -> Callable[..., EventPayload]:
    """Factory fixture: ``event("round.started", roundId=..., serverNow=...)``."""
    return make_event
