"""
Jhandi Munda - Push Channel Subscription

Keeps one Server-Sent Events stream open against the backend, decodes
each message into a typed event, and reconnects with linear backoff when
the stream drops. After too many failed attempts the channel gives up and
reports a terminal status until a manual reconnect.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, replace
from typing import AsyncIterator, Callable

import httpx

from jhandi_munda.api.client import SSE_PATH
from jhandi_munda.engine.base import (
    Cancellable,
    ConnectionState,
    ConnectionStatus,
    Scheduler,
)
from jhandi_munda.errors import ConnectionExhausted, MalformedPayload, TransportError
from jhandi_munda.realtime.events import EventPayload, decode_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SSEMessage:
    """One dispatched ``text/event-stream`` message."""

    event: str
    data: str
    id: str | None = None


async def iter_sse(lines: AsyncIterator[str]) -> AsyncIterator[SSEMessage]:
    """Group stream lines into SSE messages.

    Comment lines (``:``) are skipped, multi-line ``data`` is joined with
    newlines, and a blank line dispatches. Messages with no ``event``
    field are named ``message``.
    """
    event: str | None = None
    data: list[str] = []
    last_id: str | None = None

    async for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if data:
                yield SSEMessage(event or "message", "\n".join(data), last_id)
            event = None
            data = []
            continue
        if line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            event = value
        elif name == "data":
            data.append(value)
        elif name == "id":
            last_id = value


class EventChannel:
    """Owns the SSE subscription and its reconnect policy.

    Callbacks run on the event loop that drives the channel:
    ``on_event`` for every decoded event, ``on_open`` each time the stream
    opens, ``on_close`` each time it drops, and ``on_status`` on every
    ConnectionState change.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        scheduler: Scheduler,
        on_event: Callable[[EventPayload], None],
        *,
        on_open: Callable[[], None] | None = None,
        on_close: Callable[[], None] | None = None,
        on_status: Callable[[ConnectionState], None] | None = None,
        path: str = SSE_PATH,
        reconnect_delay_ms: int = 2000,
        max_reconnect_attempts: int = 10,
        max_backoff_multiplier: int = 5,
    ) -> None:
        self._client = client
        self._scheduler = scheduler
        self._on_event = on_event
        self._on_open = on_open
        self._on_close = on_close
        self._on_status = on_status
        self._path = path
        self.reconnect_delay_ms = reconnect_delay_ms
        self.max_reconnect_attempts = max_reconnect_attempts
        self.max_backoff_multiplier = max_backoff_multiplier

        self._state = ConnectionState()
        self._task: asyncio.Task | None = None
        self._reconnect_handle: Cancellable | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state.connected

    @property
    def attempts(self) -> int:
        return self._state.attempts

    def backoff_delay_ms(self, attempts: int) -> int:
        """Delay before reconnect attempt number ``attempts``."""
        return self.reconnect_delay_ms * min(attempts, self.max_backoff_multiplier)

    # -- Lifecycle ---------------------------------------------------------------

    def connect(self) -> None:
        """Open the stream. Must be called from inside the running event loop."""
        self._reconnect_handle = None
        was_connected = self._state.connected
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.info("Connecting to %s%s", self._client.base_url, self._path)
        self._set_state(connected=False, status=ConnectionStatus.CONNECTING)
        # The replaced stream counts as closed even though it raised nothing.
        if was_connected:
            self._notify_close()
        self._task = asyncio.ensure_future(self._listen())

    def reconnect(self) -> None:
        """Manual reconnect: reset the attempt counter and reopen now.

        This is the only way out of the terminal FAILED status.
        """
        self._cancel_reconnect()
        self._set_state(attempts=0)
        self.connect()

    async def aclose(self) -> None:
        """Stop reconnecting and close the stream."""
        self._cancel_reconnect()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        was_connected = self._state.connected
        self._set_state(connected=False, status=ConnectionStatus.CLOSED)
        if was_connected:
            self._notify_close()

    async def _listen(self) -> None:
        try:
            async with self._client.stream(
                "GET", self._path, headers={"Accept": "text/event-stream"}
            ) as response:
                if response.status_code != 200:
                    raise TransportError(f"Stream open failed: HTTP {response.status_code}")
                self._handle_open()
                async for message in iter_sse(response.aiter_lines()):
                    self.dispatch(message.event, message.data)
            raise TransportError("Stream closed by server")
        except asyncio.CancelledError:
            raise
        except (httpx.HTTPError, httpx.StreamError, TransportError) as exc:
            self._handle_transport_error(exc)

    # -- Message handling --------------------------------------------------------

    def dispatch(self, name: str, data: str) -> EventPayload | None:
        """Decode one message and hand it on. Malformed messages are dropped."""
        try:
            payload = decode_event(name, data)
        except MalformedPayload as exc:
            logger.warning("Dropped message: %s", exc)
            return None

        logger.debug("Event %s (serverNow=%d)", payload.event.value, payload.server_now)
        try:
            self._on_event(payload)
        except Exception:
            logger.exception("Error handling %s event", payload.event.value)
        return payload

    def _handle_open(self) -> None:
        logger.info("Stream opened")
        self._set_state(connected=True, attempts=0, status=ConnectionStatus.CONNECTED)
        if self._on_open is not None:
            try:
                self._on_open()
            except Exception:
                logger.exception("Error in stream open handler")

    def _handle_transport_error(self, exc: Exception) -> None:
        """Mark the channel down and schedule the next attempt.

        httpx streams do not recover on their own, so every transport
        error here means the stream is fully closed.
        """
        logger.warning("Stream error: %s", exc)
        was_connected = self._state.connected
        self._set_state(connected=False, status=ConnectionStatus.LOST)
        if was_connected:
            self._notify_close()
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        attempts = self._state.attempts
        if attempts >= self.max_reconnect_attempts:
            logger.error("%s", ConnectionExhausted(attempts))
            self._set_state(status=ConnectionStatus.FAILED)
            return

        attempts += 1
        delay_ms = self.backoff_delay_ms(attempts)
        logger.info("Reconnecting in %dms (attempt %d)", delay_ms, attempts)
        self._set_state(
            attempts=attempts,
            status=ConnectionStatus.RECONNECTING,
            message=f"Reconnecting in {math.ceil(delay_ms / 1000)}s...",
        )
        self._reconnect_handle = self._scheduler.call_later(delay_ms / 1000, self.connect)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _notify_close(self) -> None:
        if self._on_close is not None:
            try:
                self._on_close()
            except Exception:
                logger.exception("Error in stream close handler")

    def _set_state(
        self,
        *,
        connected: bool | None = None,
        attempts: int | None = None,
        status: ConnectionStatus | None = None,
        message: str | None = None,
    ) -> None:
        changes: dict = {}
        if connected is not None:
            changes["connected"] = connected
        if attempts is not None:
            changes["attempts"] = attempts
        if status is not None:
            changes["status"] = status
            changes["message"] = message or status.value
        state = replace(self._state, **changes)
        if state == self._state:
            return
        self._state = state
        if self._on_status is not None:
            try:
                self._on_status(state)
            except Exception:
                logger.exception("Error in connection status handler")
