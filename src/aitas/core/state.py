# src/aitas/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..care.care_mode import CareModeController
from ..pipeline.runner import ClassificationPipeline
from ..scoring.display import SkipList
from ..storage.store import TaskStore
from .ports import Reasoner


@dataclass
class AppState:
    """
    Shared runtime state for connectors and commands.

    Notes:
    - `settings` is the process-wide Settings object (or a test double).
    - `skips` is view-local and never persisted.
    """

    settings: Any
    store: TaskStore
    reasoner: Reasoner
    care: CareModeController
    pipeline: ClassificationPipeline

    skips: SkipList = field(default_factory=SkipList)
