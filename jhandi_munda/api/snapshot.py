"""
Jhandi Munda - Snapshot Client

Pulls the full current-round state so the state machine can recover
from events it never received. At most one pull is in flight; a request
made while one is pending is dropped, not queued.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

import httpx
from pydantic import ValidationError

from jhandi_munda.api.client import CURRENT_ROUND_PATH
from jhandi_munda.api.models import Snapshot, parse_snapshot
from jhandi_munda.errors import SnapshotFetchError

logger = logging.getLogger(__name__)


class SnapshotClient:
    """Single-flight reader of ``GET /rounds/current``."""

    def __init__(self, client: httpx.AsyncClient, path: str = CURRENT_ROUND_PATH) -> None:
        self._client = client
        self._path = path
        self._in_flight: asyncio.Task | None = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    async def fetch(self) -> Snapshot:
        """Fetch and decode one snapshot.

        Raises:
            SnapshotFetchError: On network errors, error statuses, or a
                body that is not a known snapshot shape.
        """
        try:
            response = await self._client.get(
                self._path, headers={"Cache-Control": "no-store"}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SnapshotFetchError(f"Snapshot failed: {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise SnapshotFetchError(f"Snapshot request failed: {exc}") from exc

        try:
            return parse_snapshot(response.content)
        except ValidationError as exc:
            raise SnapshotFetchError(
                f"Snapshot body invalid: {exc.error_count()} validation error(s)"
            ) from exc

    async def fetch_server_now(self) -> int:
        """Fetch only the server clock reading; ignores the single-flight slot."""
        snapshot = await self.fetch()
        return snapshot.server_now

    def request(self, apply: Callable[[Snapshot], None]) -> asyncio.Task | None:
        """Start a reconciliation unless one is already running.

        Must be called from inside the running event loop.

        Returns:
            The task doing the pull, or None if the request was dropped.
        """
        if self.in_flight:
            logger.debug("Snapshot already in flight, skipping")
            return None
        self._in_flight = asyncio.ensure_future(self._reconcile(apply))
        return self._in_flight

    async def cancel(self) -> None:
        """Abandon the pull in flight, if any, so it never applies."""
        task, self._in_flight = self._in_flight, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def reconcile(self, apply: Callable[[Snapshot], None]) -> bool:
        """Run one reconciliation now, unless one is already in flight."""
        task = self.request(apply)
        if task is None:
            return False
        return await task

    async def _reconcile(self, apply: Callable[[Snapshot], None]) -> bool:
        try:
            snapshot = await self.fetch()
        except SnapshotFetchError as exc:
            logger.warning("Snapshot sync abandoned: %s", exc)
            return False
        logger.info("Snapshot %s (serverNow=%d)", snapshot.state, snapshot.server_now)
        try:
            apply(snapshot)
        except Exception:
            logger.exception("Error applying %s snapshot", snapshot.state)
            return False
        return True
