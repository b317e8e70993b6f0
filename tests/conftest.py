# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from aitas.cli.bootstrap import create_initial_state
from aitas.core.state import AppState
from aitas.storage.models import Category
from aitas.storage.store import TaskStore

from .fakes import FakeReasoner


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="aitas-test",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        db_path=tmp_path / "aitas.sqlite3",
        # Reasoning
        ai_mode="hybrid",
        llm_probe_timeout_seconds=3.0,
        classify_timeout_seconds=5.0,
        review_timeout_seconds=10.0,
        # Pipeline
        replay_pause_seconds=0.0,
        suggestion_window_days=7,
        # User-facing defaults
        default_personality="standard",
        sanctuary_keywords=["walk", "nap"],
        console_enabled=False,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.db_path)


@pytest.fixture()
def reasoner() -> FakeReasoner:
    return FakeReasoner()


@pytest.fixture()
def state(settings: SimpleNamespace, reasoner: FakeReasoner) -> AppState:
    """
    AppState wired with a fake reasoner.

    NOTE: We keep the real SQLite store here because its correctness is part
    of what we want to test. Default categories are seeded by bootstrap.
    """
    return create_initial_state(settings=settings, reasoner=reasoner)


@pytest.fixture()
def categories(state: AppState) -> dict[str, Category]:
    """Seeded categories by name (Work, Study, Health, Hobby, Misc[default])."""
    return {c.name: c for c in state.store.list_categories()}
