"""
Jhandi Munda - Backend HTTP Client

Factory for the shared ``httpx.AsyncClient`` used by both the push
channel and the snapshot pulls.
"""

from __future__ import annotations

import httpx

from jhandi_munda.config.settings import Settings, get_settings

SSE_PATH = "/sse"
CURRENT_ROUND_PATH = "/rounds/current"


def create_backend_client(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an async client bound to the configured backend.

    The read timeout is disabled because the push stream is expected to
    stay quiet between rounds; connect and write still time out.
    """
    settings = settings or get_settings()
    timeout = httpx.Timeout(settings.request_timeout_s, read=None)
    return httpx.AsyncClient(
        base_url=settings.backend_url.rstrip("/"),
        timeout=timeout,
        transport=transport,
        headers={"Cache-Control": "no-store"},
    )
