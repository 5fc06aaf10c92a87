"""
Jhandi Munda - Round State Machine

Turns pushed events and pulled snapshots into a single display state.

The displayed state is a function of the installed RoundWindow, the
stored Outcome, the CancellationWindow and the current server time.
Every transition first revokes the timers it supersedes, and a
transition that would produce the view already on screen leaves the
running timer alone, so re-applying a snapshot is a no-op.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from jhandi_munda.api.models import (
    IdleSnapshot,
    LastOutcomeEvent,
    RoundCancelledEvent,
    RoundResultEvent,
    RoundScheduledEvent,
    RoundSnapshot,
    RoundStartedEvent,
    ScheduledSnapshot,
    Snapshot,
)
from jhandi_munda.engine.base import (
    ROUND_CANCELLED,
    WAITING_NEXT_ROUND,
    WAITING_RESULT,
    CancellationWindow,
    CountdownFrame,
    CountdownPhase,
    CountdownTimer,
    DisplayState,
    DisplayView,
    GraceTimer,
    NoTimer,
    Outcome,
    ResultKind,
    RoundWindow,
    Scheduler,
    SettleTimer,
    TimerSlot,
)
from jhandi_munda.engine.countdown import CountdownScheduler
from jhandi_munda.engine.time_sync import TimeSync

if TYPE_CHECKING:
    from jhandi_munda.config.settings import Settings
    from jhandi_munda.realtime.events import EventPayload

logger = logging.getLogger(__name__)

ViewListener = Callable[[DisplayView], None]
FrameListener = Callable[[CountdownFrame], None]


class RoundStateMachine:
    """Central authority over what the display shows.

    Inputs are the five push events (``handle_event``) and the three
    snapshot shapes (``apply_snapshot``). Outputs are DisplayView changes
    sent to listeners and the countdown target handed to the
    CountdownScheduler. Transitions are total: they never raise.
    """

    def __init__(
        self,
        time_sync: TimeSync,
        countdown: CountdownScheduler,
        scheduler: Scheduler,
        *,
        settle_delay_ms: int = 3600,
        waiting_grace_ms: int = 2000,
        cancel_fallback_ms: int = 30000,
    ) -> None:
        self._time_sync = time_sync
        self._countdown = countdown
        self._scheduler = scheduler
        self.settle_delay_ms = settle_delay_ms
        self.waiting_grace_ms = waiting_grace_ms
        self.cancel_fallback_ms = cancel_fallback_ms

        self._window: RoundWindow | None = None
        self._outcome = Outcome()
        self._cancellation: CancellationWindow | None = None
        self._round_id: str | None = None
        self._timer: TimerSlot = NoTimer()
        self._timer_token = 0
        self._view = DisplayView(state=DisplayState.IDLE)
        self._listeners: list[ViewListener] = []
        self._frame_listeners: list[FrameListener] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        time_sync: TimeSync,
        countdown: CountdownScheduler,
        scheduler: Scheduler,
    ) -> RoundStateMachine:
        return cls(
            time_sync,
            countdown,
            scheduler,
            settle_delay_ms=settings.settle_delay_ms,
            waiting_grace_ms=settings.waiting_grace_ms,
            cancel_fallback_ms=settings.cancel_fallback_ms,
        )

    # -- Read-only state -----------------------------------------------------

    @property
    def view(self) -> DisplayView:
        return self._view

    @property
    def state(self) -> DisplayState:
        return self._view.state

    @property
    def window(self) -> RoundWindow | None:
        return self._window

    @property
    def outcome(self) -> Outcome:
        return self._outcome

    @property
    def cancellation(self) -> CancellationWindow | None:
        return self._cancellation

    @property
    def round_id(self) -> str | None:
        return self._round_id

    @property
    def timer(self) -> TimerSlot:
        return self._timer

    @property
    def countdown_target(self) -> int | None:
        if isinstance(self._timer, CountdownTimer):
            return self._timer.target
        return None

    def add_listener(self, listener: ViewListener) -> None:
        """Call ``listener`` with every new DisplayView."""
        self._listeners.append(listener)

    def add_frame_listener(self, listener: FrameListener) -> None:
        """Call ``listener`` with every countdown tick."""
        self._frame_listeners.append(listener)

    def close(self) -> None:
        """Revoke all timers; the machine keeps its last state."""
        self._cancel_timers()

    # -- Push events ---------------------------------------------------------

    def handle_event(self, payload: EventPayload) -> None:
        """Apply one decoded push event."""
        self._time_sync.update(payload.server_now)
        message = payload.message

        if isinstance(message, LastOutcomeEvent):
            self.on_last_outcome(message)
        elif isinstance(message, RoundScheduledEvent):
            self.on_round_scheduled(message)
        elif isinstance(message, RoundStartedEvent):
            self.on_round_started(message)
        elif isinstance(message, RoundResultEvent):
            self.on_round_result(message)
        elif isinstance(message, RoundCancelledEvent):
            self.on_round_cancelled(message)

    def on_last_outcome(self, message: LastOutcomeEvent) -> None:
        """Store the outcome; only show it if nothing else is in progress."""
        self._outcome = message.outcome()
        self._round_id = message.round_id

        now = self._time_sync.server_time()
        if self.state is DisplayState.IDLE or (
            self.state is DisplayState.WAITING and not self._has_active_window(now)
        ):
            self._show_result(ResultKind.LAST_OUTCOME)
        else:
            self._refresh_view()

    def on_round_scheduled(self, message: RoundScheduledEvent) -> None:
        self._schedule(message.window())

    def on_round_started(self, message: RoundStartedEvent) -> None:
        self._start_round(message.window(), message.round_id)

    def on_round_result(self, message: RoundResultEvent) -> None:
        self._cancellation = None
        self._round_id = message.round_id
        self._reveal(message.outcome())

    def on_round_cancelled(self, message: RoundCancelledEvent | None = None) -> None:
        self._cancel_round(refresh_horizon=True)

    # -- Snapshots -------------------------------------------------------------

    def apply_snapshot(self, snapshot: Snapshot) -> None:
        """Reconcile with a pulled snapshot of the current round.

        Used after reconnects and when the display becomes visible again,
        to recover from events that were never received.
        """
        self._time_sync.update(snapshot.server_now)
        now = snapshot.server_now
        last = snapshot.last_outcome.outcome()

        if isinstance(snapshot, ScheduledSnapshot):
            self._outcome = last
            self._round_id = last.round_id
            self._schedule(snapshot.window())

        elif isinstance(snapshot, RoundSnapshot):
            self._apply_round_snapshot(snapshot, last, now)

        elif isinstance(snapshot, IdleSnapshot):
            self._outcome = last
            self._round_id = last.round_id
            self._window = None
            self._show_result(ResultKind.LAST_OUTCOME)

    def _apply_round_snapshot(self, snapshot: RoundSnapshot, last: Outcome, now: int) -> None:
        rnd = snapshot.round

        if rnd.is_cancelled:
            self._outcome = last
            self._round_id = rnd.id
            self._cancel_round(refresh_horizon=False)
            return

        if (
            self._cancellation is not None
            and self._cancellation.is_open(now)
            and self._cancellation.round_id == rnd.id
        ):
            self._outcome = last
            self._enter_waiting(ROUND_CANCELLED)
            return

        if not rnd.is_revealed:
            self._outcome = last
            if now < rnd.end_at:
                self._start_round(rnd.window(), rnd.id)
            else:
                self._round_id = rnd.id
                self._window = rnd.window()
                self._cancellation = None
                self._enter_waiting(WAITING_RESULT)
            return

        if last.round_id == rnd.id and last.dice_values == rnd.dice_values:
            outcome = last
        else:
            outcome = Outcome(rnd.dice_values, rnd.end_at, rnd.id)

        self._window = rnd.window()
        self._cancellation = None
        self._round_id = rnd.id

        if now < rnd.end_at or self._is_rolling(outcome):
            self._reveal(outcome)
        else:
            # Finished roll: show it without replaying the animation.
            self._outcome = outcome
            self._show_result(ResultKind.ROUND_RESULT)

    # -- Transitions -----------------------------------------------------------

    def _schedule(self, window: RoundWindow) -> None:
        now = self._time_sync.server_time()
        if self._cancellation is not None:
            if self._cancellation.is_open(now):
                logger.info("Ignoring schedule inside cancellation window (until %d)",
                            self._cancellation.horizon)
                self._enter_waiting(WAITING_NEXT_ROUND)
                return
            self._cancellation = None

        self._window = window
        if now >= window.end_at:
            self._show_result(ResultKind.LAST_OUTCOME)
        elif now >= window.start_at:
            self._enter_countdown(window.end_at, CountdownPhase.TO_END, self._countdown_length(window, CountdownPhase.TO_END))
        else:
            self._enter_countdown(window.start_at, CountdownPhase.TO_START, self._countdown_length(window, CountdownPhase.TO_START))

    def _start_round(self, window: RoundWindow, round_id: str) -> None:
        self._cancellation = None
        self._window = window
        self._round_id = round_id
        self._enter_countdown(
            window.end_at,
            CountdownPhase.TO_END,
            self._countdown_length(window, CountdownPhase.TO_END),
        )

    def _cancel_round(self, *, refresh_horizon: bool) -> None:
        now = self._time_sync.server_time()
        if refresh_horizon or self._cancellation is None or not self._cancellation.is_open(now):
            horizon = now + self.cancel_fallback_ms
            if self._window is not None:
                horizon = max(self._window.end_at, horizon)
            self._cancellation = CancellationWindow(horizon, self._round_id)
            logger.info("Round cancelled; distrusting schedules until %d", horizon)
        self._window = None
        self._enter_waiting(WAITING_NEXT_ROUND)

    def _reveal(self, outcome: Outcome) -> None:
        if self._is_rolling(outcome):
            return

        self._cancel_timers()
        self._outcome = outcome
        token = self._timer_token
        handle = self._scheduler.call_later(
            self.settle_delay_ms / 1000, self._on_settled, token
        )
        self._timer = SettleTimer(handle, outcome)
        self._set_view(self._make_view(DisplayState.ROLLING))

    def _enter_countdown(self, target: int, phase: CountdownPhase, total_ms: int | None) -> None:
        slot = CountdownTimer(target, phase)
        if (
            self.state is DisplayState.COUNTDOWN
            and self._timer == slot
            and self._countdown.target == target
        ):
            self._refresh_view()
            return

        self._cancel_timers()
        self._timer = slot
        self._set_view(self._make_view(
            DisplayState.COUNTDOWN,
            phase.status_text,
            countdown_target=target,
            countdown_phase=phase,
        ))
        token = self._timer_token
        self._countdown.start(
            target,
            phase,
            total_ms=total_ms,
            on_tick=self._on_countdown_tick,
            on_expire=lambda: self._on_countdown_expired(token),
        )

    def _enter_waiting(self, message: str) -> None:
        now = self._time_sync.server_time()
        needs_grace = not self._has_active_window(now)
        if (
            self.state is DisplayState.WAITING
            and self._view.status_text == message
            and (isinstance(self._timer, GraceTimer) or not needs_grace)
        ):
            return

        self._cancel_timers()
        self._set_view(self._make_view(DisplayState.WAITING, message))
        if needs_grace:
            token = self._timer_token
            handle = self._scheduler.call_later(
                self.waiting_grace_ms / 1000, self._on_grace_elapsed, token
            )
            self._timer = GraceTimer(handle)

    def _show_result(self, kind: ResultKind) -> None:
        if self.state is DisplayState.RESULT and self._view.result_kind is kind:
            self._refresh_view()
            return
        self._cancel_timers()
        self._set_view(self._make_view(DisplayState.RESULT, WAITING_NEXT_ROUND, result_kind=kind))

    # -- Timer callbacks -------------------------------------------------------

    def _on_countdown_tick(self, frame: CountdownFrame) -> None:
        for listener in self._frame_listeners:
            try:
                listener(frame)
            except Exception:
                logger.exception("Countdown frame listener failed")

    def _on_countdown_expired(self, token: int) -> None:
        if token != self._timer_token:
            return
        self._timer = NoTimer()
        self._enter_waiting(WAITING_RESULT)

    def _on_settled(self, token: int) -> None:
        if token != self._timer_token:
            return
        timer, self._timer = self._timer, NoTimer()
        if isinstance(timer, SettleTimer):
            # The result shows the revealed dice, not a last.outcome from mid-roll.
            self._outcome = timer.outcome
            self._round_id = timer.outcome.round_id or self._round_id
        self._show_result(ResultKind.ROUND_RESULT)

    def _on_grace_elapsed(self, token: int) -> None:
        if token != self._timer_token:
            return
        self._timer = NoTimer()
        now = self._time_sync.server_time()
        if self.state is DisplayState.WAITING and not self._has_active_window(now):
            self._show_result(ResultKind.LAST_OUTCOME)

    # -- Helpers ---------------------------------------------------------------

    def _cancel_timers(self) -> None:
        """Revoke every timer the machine owns."""
        self._countdown.cancel()
        if isinstance(self._timer, (SettleTimer, GraceTimer)):
            self._timer.handle.cancel()
        self._timer = NoTimer()
        self._timer_token += 1

    def _has_active_window(self, now: int) -> bool:
        return self._window is not None and self._window.is_active(now)

    def _is_rolling(self, outcome: Outcome) -> bool:
        return (
            self.state is DisplayState.ROLLING
            and isinstance(self._timer, SettleTimer)
            and self._timer.outcome.dice_values == outcome.dice_values
            and self._timer.outcome.round_id == outcome.round_id
        )

    @staticmethod
    def _countdown_length(window: RoundWindow, phase: CountdownPhase) -> int | None:
        if window.total_ms is not None:
            return window.total_ms
        if phase is CountdownPhase.TO_END:
            return window.end_at - window.start_at
        return window.remaining_ms

    def _make_view(
        self,
        state: DisplayState,
        status_text: str = "",
        **extra,
    ) -> DisplayView:
        return DisplayView(
            state=state,
            status_text=status_text,
            target_values=self._outcome.dice_values,
            round_id=self._round_id,
            **extra,
        )

    def _refresh_view(self) -> None:
        """Carry the latest outcome and round id into the current view."""
        if self.state is DisplayState.ROLLING:
            return
        view = self._view
        self._set_view(DisplayView(
            state=view.state,
            status_text=view.status_text,
            target_values=self._outcome.dice_values,
            round_id=self._round_id,
            result_kind=view.result_kind,
            countdown_target=view.countdown_target,
            countdown_phase=view.countdown_phase,
        ))

    def _set_view(self, view: DisplayView) -> None:
        if view == self._view:
            return
        previous = self._view
        self._view = view
        if previous.state is not view.state:
            logger.info("Display %s -> %s %s", previous.state.name, view.state.name, view.status_text)
        for listener in self._listeners:
            try:
                listener(view)
            except Exception:
                logger.exception("Display listener failed")
