# src/aitas/connectors/console_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from datetime import datetime

from ..cli.commands import add_task_from_text
from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

PROMPT = ">>> "

LineReader = Callable[[str], str]


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def handle_line(state: AppState, line: str) -> str | None:
    """
    One console line -> one reply.

    Slash commands go to the registry; anything else becomes a new task.
    """
    line = line.strip()
    if not line:
        return None

    try:
        reply = command_registry.handle(state, line, emit=_print_ts)
    except Exception:
        logger.exception("Command handler crashed.")
        return "Internal error while handling a command."
    if reply is not None:
        return reply

    try:
        task = add_task_from_text(state, line)
    except ValueError as e:
        return f"Cannot add task: {e}"
    return f"Added {task.id[:8]}: {task.title} (enrichment running in background)"


class StdinReader:
    """
    Blocking line reads on a daemon thread, handed to the event loop.

    A read is only started when `readline()` asks for one, so the prompt is
    printed after the previous reply. The thread is a daemon: a pending
    input() never keeps the process alive after the loop has finished.
    None means end of input.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, read: LineReader = input) -> None:
        self._loop = loop
        self._read = read
        self._wanted = threading.Event()
        self._lines: asyncio.Queue[str | None] = asyncio.Queue()
        self.thread = threading.Thread(target=self._run, name="console-stdin", daemon=True)
        self.thread.start()

    def _post(self, item: str | None) -> None:
        # The loop may already be closed when a late line arrives.
        with contextlib.suppress(RuntimeError):
            self._loop.call_soon_threadsafe(self._lines.put_nowait, item)

    def _run(self) -> None:
        while True:
            self._wanted.wait()
            self._wanted.clear()
            try:
                line = self._read(PROMPT)
            except (EOFError, KeyboardInterrupt):
                self._post(None)
                return
            except Exception:
                logger.exception("Console read failed.")
                self._post(None)
                return
            self._post(line)

    async def readline(self) -> str | None:
        self._wanted.set()
        return await self._lines.get()


async def run_console_loop(state: AppState, read: LineReader = input) -> None:
    """Interactive REPL; pipeline tasks keep running while the user is typing."""
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type a task to add it. Use /help for commands. Use /exit to quit.\n")

    reader = StdinReader(asyncio.get_running_loop(), read)

    while True:
        raw = await reader.readline()
        if raw is None:
            logger.info("Console EOF received, exiting.")
            break

        user_input = raw.strip()
        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        reply = handle_line(state, user_input)
        if reply is not None:
            _print_ts(reply)

    logger.info("Console connector finished.")
