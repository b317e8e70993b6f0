# src/aitas/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the store, reasoning chain, care mode and pipeline into AppState,
- seeds a starter category set on first run.
"""

from __future__ import annotations

import logging

from ..care.care_mode import CareModeController
from ..config import get_settings
from ..core.ports import Reasoner
from ..core.state import AppState
from ..llm.client import build_reasoner
from ..pipeline.runner import ClassificationPipeline
from ..storage.models import ScalingWeight
from ..storage.store import TaskStore

logger = logging.getLogger(__name__)

# (name, scaling weight, icon, color, is_default)
DEFAULT_CATEGORIES: list[tuple[str, ScalingWeight, str, str, bool]] = [
    ("Work", ScalingWeight.STRICT, "briefcase-outline", "#3B82F6", False),
    ("Study", ScalingWeight.NORMAL, "book-open-variant", "#F59E0B", False),
    ("Health", ScalingWeight.NORMAL, "heart-pulse", "#EF4444", False),
    ("Hobby", ScalingWeight.RELAXED, "gamepad-variant", "#10B981", False),
    ("Misc", ScalingWeight.NORMAL, "package-variant", "#9CA3AF", True),
]


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def seed_default_categories(store: TaskStore) -> int:
    """Create the starter categories when the store has none. Returns how many were added."""
    if store.list_categories():
        return 0
    for order, (name, weight, icon, color, is_default) in enumerate(DEFAULT_CATEGORIES):
        store.add_category(
            name=name,
            scaling_weight=weight,
            icon=icon,
            color=color,
            sort_order=order,
            is_default=is_default,
        )
    logger.info("Seeded %d default categories", len(DEFAULT_CATEGORIES))
    return len(DEFAULT_CATEGORIES)


def create_initial_state(*, settings=None, reasoner: Reasoner | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the reasoner) injectable makes the app easier to test
    and avoids hidden global config reads. If settings is None, falls back to
    get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.db_path)
    seed_default_categories(store)

    if reasoner is None:
        reasoner = build_reasoner(settings)

    care = CareModeController(store)
    pipeline = ClassificationPipeline(store, reasoner, settings, care=care)

    return AppState(
        settings=settings,
        store=store,
        reasoner=reasoner,
        care=care,
        pipeline=pipeline,
    )
