# tests/test_display_score.py

from __future__ import annotations

from datetime import date, timedelta

from aitas.scoring.display import SkipList, build_focus_view, display_score, rank_tasks
from aitas.storage.models import Category, Priority, ScalingWeight, Task

TODAY = date(2026, 3, 10)


def _task(tid: str, *, priority=Priority.MEDIUM, due=None, category_id=None, completed=False) -> Task:
    return Task(
        id=tid,
        title=f"task {tid}",
        created_at=0.0,
        updated_at=0.0,
        priority=priority,
        due_date=due,
        category_id=category_id,
        completed=completed,
    )


def test_display_score_adds_priority_weight_and_due_bonus() -> None:
    strict = Category(id="c1", name="Work", scaling_weight=ScalingWeight.STRICT)
    t = _task("a", priority=Priority.HIGH, due=TODAY, category_id="c1")

    # 50 base + 30 high + 20 strict + 20 due today
    assert display_score(t, strict, TODAY) == 120


def test_display_score_tomorrow_and_no_category() -> None:
    t = _task("a", priority=Priority.LOW, due=TODAY + timedelta(days=1))
    assert display_score(t, None, TODAY) == 60

    relaxed = Category(id="c", name="Hobby", scaling_weight=ScalingWeight.RELAXED)
    later = _task("b", priority=Priority.MEDIUM, due=TODAY + timedelta(days=5))
    assert display_score(later, relaxed, TODAY) == 65


def test_overdue_counts_as_due_today() -> None:
    t = _task("a", priority=Priority.LOW, due=TODAY - timedelta(days=3))
    assert display_score(t, None, TODAY) == 70


def test_rank_filters_future_and_completed_tasks() -> None:
    tasks = [
        _task("future", due=TODAY + timedelta(days=1)),
        _task("done", due=TODAY, completed=True),
        _task("undated"),
        _task("today", due=TODAY),
    ]
    ranked = rank_tasks(tasks, [], today=TODAY)
    assert [s.task.id for s in ranked] == ["today", "undated"]


def test_rank_ties_keep_insertion_order() -> None:
    tasks = [_task("first"), _task("second"), _task("third")]
    ranked = rank_tasks(tasks, [], today=TODAY)
    assert [s.task.id for s in ranked] == ["first", "second", "third"]


def test_skipped_tasks_move_to_tail_in_skip_order() -> None:
    tasks = [
        _task("a", priority=Priority.HIGH),
        _task("b", priority=Priority.MEDIUM),
        _task("c", priority=Priority.LOW),
    ]
    skips = SkipList()
    skips.skip("b")
    skips.skip("a")

    ranked = rank_tasks(tasks, [], today=TODAY, skipped=list(skips))
    assert [s.task.id for s in ranked] == ["c", "b", "a"]
    # Scores are not touched by skipping.
    assert ranked[2].score == 80


def test_focus_view_preview_shrinks_in_care_mode() -> None:
    tasks = [_task(str(i)) for i in range(7)]

    normal = build_focus_view(tasks, [], today=TODAY)
    assert normal.focus is not None and normal.focus.task.id == "0"
    assert [s.task.id for s in normal.preview] == ["1", "2", "3", "4"]

    care = build_focus_view(tasks, [], today=TODAY, care_mode_active=True)
    assert [s.task.id for s in care.preview] == ["1", "2"]


def test_focus_view_empty() -> None:
    view = build_focus_view([], [], today=TODAY)
    assert view.focus is None
    assert view.preview == []
