# src/aitas/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, applies lazy care-mode expiry, schedules
the startup replay of pending tasks, then runs the console REPL (optional).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _shutdown(state: AppState, replay: asyncio.Task[list[str]] | None) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    if replay is not None and not replay.done():
        replay.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await replay

    # In-flight pipeline runs stay "pending" if cut short and are replayed next start.
    try:
        await asyncio.wait_for(state.pipeline.wait_idle(), timeout=5.0)
    except asyncio.TimeoutError:
        logger.info("Pipeline still busy at shutdown; leftovers will be replayed next start.")

    close = getattr(state.reasoner, "aclose", None)
    if close is not None:
        try:
            await close()
        except Exception:
            logger.debug("Reasoner close failed.", exc_info=True)


async def _amain(settings) -> None:
    state = create_initial_state(settings=settings)

    care = state.care.load()
    if care.active:
        logger.info("Care mode active (reason=%s) until %s", care.reason, care.expires_at)

    replay = asyncio.create_task(state.pipeline.replay_pending(), name="startup-replay")

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not every platform supports loop signal handlers.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)

    try:
        if settings.console_enabled:
            console = asyncio.create_task(run_console_loop(state), name="console")
            waiter = asyncio.create_task(stop.wait(), name="stop-signal")
            await asyncio.wait({console, waiter}, return_when=asyncio.FIRST_COMPLETED)
            waiter.cancel()
            if not console.done():
                # The stdin reader is a daemon thread; a pending input() does not block exit.
                console.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await console
        else:
            logger.info("Console disabled. Replaying pending tasks, then exiting.")
            await replay
    finally:
        await _shutdown(state, replay)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/aitas")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "aitas"))

    try:
        asyncio.run(_amain(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
