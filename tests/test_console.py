# tests/test_console.py

from __future__ import annotations

import asyncio
import contextlib
import threading

import pytest

from aitas.connectors.console_connector import run_console_loop
from aitas.core.state import AppState
from aitas.storage.models import ClassificationStatus


def _scripted(lines: list[str]):
    pending = list(lines)
    prompts: list[str] = []

    def read(prompt: str) -> str:
        prompts.append(prompt)
        if not pending:
            raise EOFError
        return pending.pop(0)

    return read, prompts


@pytest.mark.asyncio
async def test_console_adds_tasks_and_runs_commands(state: AppState, capsys: pytest.CaptureFixture[str]) -> None:
    read, prompts = _scripted(["Buy milk !high", "", "/list"])

    await asyncio.wait_for(run_console_loop(state, read=read), timeout=5.0)
    await state.pipeline.wait_idle()

    (task,) = state.store.list_tasks()
    assert task.title == "Buy milk"
    assert task.classification_status == ClassificationStatus.COMPLETED

    out = capsys.readouterr().out
    assert "Added " in out
    assert "Buy milk" in out.split("Tasks:", 1)[1]
    # One read per line plus the one that hit end of input.
    assert len(prompts) == 4


@pytest.mark.asyncio
async def test_console_exit_command_stops_reading(state: AppState) -> None:
    read, prompts = _scripted(["/exit", "Never added"])

    await asyncio.wait_for(run_console_loop(state, read=read), timeout=5.0)

    assert state.store.list_tasks() == []
    assert len(prompts) == 1


@pytest.mark.asyncio
async def test_blocked_read_does_not_hold_the_loop(state: AppState) -> None:
    release = threading.Event()
    started = threading.Event()

    def read(prompt: str) -> str:
        started.set()
        release.wait()
        return ""

    console = asyncio.create_task(run_console_loop(state, read=read))
    try:
        assert await asyncio.to_thread(started.wait, 5.0)

        console.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await asyncio.wait_for(console, timeout=1.0)
        assert console.cancelled()

        readers = [t for t in threading.enumerate() if t.name == "console-stdin" and t.is_alive()]
        assert readers
        assert all(t.daemon for t in readers)
    finally:
        release.set()
