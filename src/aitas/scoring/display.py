# src/aitas/scoring/display.py

"""
Display scoring.

Ranks today's tasks so the home view can show one "focus" task and a short
preview list. Everything here is pure: no I/O, safe to recompute at any time.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta

from ..storage.models import Category, Priority, ScalingWeight, Task

BASE_SCORE = 50

PRIORITY_BONUS = {
    Priority.HIGH: 30,
    Priority.MEDIUM: 15,
    Priority.LOW: 0,
}

SCALING_BONUS = {
    ScalingWeight.STRICT: 20,
    ScalingWeight.NORMAL: 10,
    ScalingWeight.RELAXED: 0,
}

DUE_TODAY_BONUS = 20
DUE_TOMORROW_BONUS = 10

PREVIEW_SIZE = 4
CARE_MODE_PREVIEW_SIZE = 2


def display_score(task: Task, category: Category | None, today: date | None = None) -> int:
    """Higher score = shown first. Range 50..120."""
    today = today or date.today()
    score = BASE_SCORE

    score += PRIORITY_BONUS.get(task.priority, 0)

    if category is not None:
        score += SCALING_BONUS.get(category.scaling_weight, 0)

    if task.due_date is not None:
        if task.due_date <= today:
            score += DUE_TODAY_BONUS
        elif task.due_date == today + timedelta(days=1):
            score += DUE_TOMORROW_BONUS

    return score


def is_eligible(task: Task, today: date) -> bool:
    """Incomplete and due today-or-earlier, or undated."""
    if task.completed:
        return False
    return task.due_date is None or task.due_date <= today


@dataclass(frozen=True, slots=True)
class ScoredTask:
    task: Task
    score: int
    category: Category | None


@dataclass(frozen=True, slots=True)
class FocusView:
    focus: ScoredTask | None
    preview: list[ScoredTask] = field(default_factory=list)


def rank_tasks(
    tasks: Iterable[Task],
    categories: Sequence[Category],
    today: date | None = None,
    skipped: Iterable[str] = (),
) -> list[ScoredTask]:
    """
    Filter to eligible tasks and sort by score, descending.

    Ties keep insertion order (sorted() is stable). Skipped ids are demoted to
    the end in the order they were skipped; their scores are not changed.
    """
    today = today or date.today()
    by_id = {c.id: c for c in categories}

    scored: list[ScoredTask] = []
    for t in tasks:
        if not is_eligible(t, today):
            continue
        cat = by_id.get(t.category_id) if t.category_id else None
        scored.append(ScoredTask(task=t, score=display_score(t, cat, today), category=cat))

    scored = sorted(scored, key=lambda s: s.score, reverse=True)

    skip_order = list(dict.fromkeys(skipped))
    if not skip_order:
        return scored
    skip_set = set(skip_order)
    head = [s for s in scored if s.task.id not in skip_set]
    by_task = {s.task.id: s for s in scored if s.task.id in skip_set}
    tail = [by_task[tid] for tid in skip_order if tid in by_task]
    return head + tail


def build_focus_view(
    tasks: Iterable[Task],
    categories: Sequence[Category],
    today: date | None = None,
    skipped: Iterable[str] = (),
    *,
    care_mode_active: bool = False,
) -> FocusView:
    ranked = rank_tasks(tasks, categories, today=today, skipped=skipped)
    if not ranked:
        return FocusView(focus=None, preview=[])
    size = CARE_MODE_PREVIEW_SIZE if care_mode_active else PREVIEW_SIZE
    return FocusView(focus=ranked[0], preview=ranked[1 : 1 + size])


class SkipList:
    """View-local skip state. Lives in memory only; never persisted."""

    def __init__(self) -> None:
        self._ids: list[str] = []

    def skip(self, task_id: str) -> None:
        # Skipping again moves the task behind the other skipped ones.
        if task_id in self._ids:
            self._ids.remove(task_id)
        self._ids.append(task_id)

    def clear(self) -> None:
        self._ids.clear()

    def __iter__(self):
        return iter(self._ids)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)
