"""
Jhandi Munda - Console Host

Runs the round relay against a backend and logs every display change.

Usage:
    python -m jhandi_munda --backend-url http://localhost:3000
    jhandi-munda --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from jhandi_munda.config.settings import Settings, get_settings
from jhandi_munda.engine.base import ConnectionState, DisplayState, DisplayView, FaceSymbol
from jhandi_munda.realtime.sync_manager import RoundController

logger = logging.getLogger("jhandi_munda")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def describe_view(view: DisplayView) -> str:
    """One log line for a display change."""
    parts = [view.state.name]
    if view.status_text:
        parts.append(view.status_text)
    if view.state in (DisplayState.ROLLING, DisplayState.RESULT):
        parts.append(f"[{FaceSymbol.describe(view.target_values)}]")
    if view.result_kind is not None:
        parts.append(f"({view.result_kind.value})")
    if view.round_id:
        parts.append(f"round={view.round_id}")
    return " ".join(parts)


async def run(settings: Settings) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass  # Windows

    controller = RoundController(settings)
    controller.add_listener(lambda view: logger.info("%s", describe_view(view)))

    def on_status(state: ConnectionState) -> None:
        logger.info("Connection: %s", state.message)

    controller.add_status_listener(on_status)

    async with controller:
        await stop.wait()
    logger.info("Final state: %s", controller.get_game_state().to_dict())


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="jhandi-munda",
        description="Relay live Jhandi Munda rounds from the backend.",
    )
    parser.add_argument("--backend-url", help="Backend base URL (overrides JHANDI_BACKEND_URL)")
    parser.add_argument("--log-level", help="Logging level (overrides JHANDI_LOG_LEVEL)")
    args = parser.parse_args(argv)

    settings = get_settings()
    updates = {}
    if args.backend_url:
        updates["backend_url"] = args.backend_url
    if args.log_level:
        updates["log_level"] = args.log_level
    if updates:
        settings = settings.model_copy(update=updates)

    configure_logging("DEBUG" if settings.debug else settings.log_level)
    logger.info("%s relay starting against %s", settings.app_title, settings.backend_url)
    asyncio.run(run(settings))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
