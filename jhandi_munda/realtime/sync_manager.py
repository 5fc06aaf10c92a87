"""
Jhandi Munda - Realtime Sync Manager

High-level controller that owns the whole engine context: clock offset,
round window, outcome, cancellation window, display state and connection
state. It wires the push channel and snapshot pulls into the state
machine and exposes the small host API (state query, manual reconnect,
visibility changes).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

import httpx

from jhandi_munda.api.client import create_backend_client
from jhandi_munda.api.snapshot import SnapshotClient
from jhandi_munda.config.settings import Settings, get_settings
from jhandi_munda.engine.base import (
    Cancellable,
    ConnectionState,
    CountdownFrame,
    DisplayView,
    GameState,
    Scheduler,
)
from jhandi_munda.engine.countdown import (
    CountdownScheduler,
    FrameTickSource,
    IntervalTickSource,
)
from jhandi_munda.engine.round_machine import RoundStateMachine
from jhandi_munda.engine.time_sync import TimeSync, wall_clock_ms
from jhandi_munda.realtime.subscriptions import EventChannel

logger = logging.getLogger(__name__)


class LoopScheduler:
    """Schedules callbacks on whichever asyncio loop is running at call time."""

    def call_later(self, delay: float, callback: Any, *args: Any) -> Cancellable:
        return asyncio.get_running_loop().call_later(delay, callback, *args)


class RoundController:
    """Coordinates the push channel, snapshot pulls and the state machine.

    One instance holds all mutable engine state; there are no module
    globals. Everything runs on a single asyncio event loop.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        self.settings = settings or get_settings()
        self._owns_client = client is None
        self._client = client or create_backend_client(self.settings)
        self._scheduler = scheduler or LoopScheduler()

        self.time_sync = TimeSync(clock)
        self.countdown = CountdownScheduler(
            self.time_sync,
            FrameTickSource(self._scheduler, self.settings.frame_interval_ms),
            IntervalTickSource(self._scheduler, self.settings.background_tick_ms),
            on_visibility_regained=self.request_snapshot,
        )
        self.machine = RoundStateMachine.from_settings(
            self.settings, self.time_sync, self.countdown, self._scheduler
        )
        self.snapshots = SnapshotClient(self._client)
        self.channel = EventChannel(
            self._client,
            self._scheduler,
            self.machine.handle_event,
            on_open=self._on_channel_open,
            on_close=self._on_channel_close,
            on_status=self._on_connection_status,
            reconnect_delay_ms=self.settings.reconnect_delay_ms,
            max_reconnect_attempts=self.settings.max_reconnect_attempts,
            max_backoff_multiplier=self.settings.max_backoff_multiplier,
        )
        self._status_listeners: list[Callable[[ConnectionState], None]] = []

    # -- Host API ------------------------------------------------------------------

    def get_game_state(self) -> GameState:
        """Summary for the host: display state, round, dice, connectivity."""
        view = self.machine.view
        return GameState(
            state=view.state.value,
            round_id=self.machine.round_id,
            target_values=self.machine.outcome.dice_values,
            connected=self.channel.connected,
        )

    @property
    def connection(self) -> ConnectionState:
        return self.channel.state

    def add_listener(self, listener: Callable[[DisplayView], None]) -> None:
        """Subscribe a renderer to display changes."""
        self.machine.add_listener(listener)

    def add_frame_listener(self, listener: Callable[[CountdownFrame], None]) -> None:
        self.machine.add_frame_listener(listener)

    def add_status_listener(self, listener: Callable[[ConnectionState], None]) -> None:
        self._status_listeners.append(listener)

    def start(self) -> None:
        """Open the push channel. Must be called inside the running loop."""
        self.channel.connect()

    def reconnect(self) -> None:
        """Manual reconnect, including out of the terminal failed status."""
        logger.info("Manual reconnect requested")
        self.channel.reconnect()

    def set_visibility(self, hidden: bool) -> None:
        """Tell the engine whether the display is currently visible."""
        self.countdown.set_hidden(hidden)

    def request_snapshot(self) -> asyncio.Task | None:
        """Start a reconciliation pull unless one is already in flight."""
        return self.snapshots.request(self.machine.apply_snapshot)

    async def aclose(self) -> None:
        self.time_sync.stop_periodic()
        await self.channel.aclose()
        await self.snapshots.cancel()
        self.machine.close()
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> RoundController:
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # -- Channel callbacks -----------------------------------------------------------

    def _on_channel_open(self) -> None:
        self.request_snapshot()
        self.time_sync.start_periodic(
            self._scheduler,
            self.settings.time_sync_interval_ms,
            self.snapshots.fetch_server_now,
        )

    def _on_channel_close(self) -> None:
        self.time_sync.stop_periodic()

    def _on_connection_status(self, state: ConnectionState) -> None:
        for listener in self._status_listeners:
            try:
                listener(state)
            except Exception:
                logger.exception("Connection status listener failed")
