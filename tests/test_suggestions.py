# tests/test_suggestions.py

from __future__ import annotations

import time
from datetime import datetime

from aitas.pipeline.suggestions import check_threshold
from aitas.storage.models import CategorySource
from aitas.storage.store import TaskStore


def test_frequency_fires_on_third_suggestion(store: TaskStore) -> None:
    cat = store.add_category(name="Work")

    for i in range(2):
        store.add_suggestion(name="Meetings", task_id=f"t{i}", parent_id=cat)
    verdict = check_threshold(store, "Meetings", cat)
    assert not verdict.should_propose
    assert verdict.reason == ""

    store.add_suggestion(name="Meetings", task_id="t2", parent_id=cat)
    verdict = check_threshold(store, "Meetings", cat)
    assert verdict.should_propose
    assert verdict.reason == "frequency"


def test_frequency_only_counts_the_trailing_window(store: TaskStore) -> None:
    now = time.time()
    old = now - 8 * 86400
    for i in range(2):
        store.add_suggestion(name="Errands", task_id=f"old{i}", parent_id=None, created_at=old)
    store.add_suggestion(name="Errands", task_id="new", parent_id=None, created_at=now)

    verdict = check_threshold(store, "Errands", "", now=datetime.fromtimestamp(now))
    assert not verdict.should_propose


def test_uncategorized_overflow_fires_at_five(store: TaskStore) -> None:
    misc = store.add_category(name="Misc", is_default=True)

    def add_fallback_task(n: int) -> None:
        tid = store.add_task(title=f"Loose end {n}")
        store.update_task_fields(tid, category_id=misc, category_source=CategorySource.FALLBACK)

    for n in range(4):
        add_fallback_task(n)
    assert not check_threshold(store, "Chores", misc).should_propose

    add_fallback_task(4)
    verdict = check_threshold(store, "Chores", misc)
    assert verdict.should_propose
    assert verdict.reason == "uncategorized_overflow"


def test_inferred_tasks_do_not_count_as_overflow(store: TaskStore) -> None:
    work = store.add_category(name="Work")
    for n in range(6):
        tid = store.add_task(title=f"Inferred {n}")
        store.update_task_fields(tid, category_id=work, category_source=CategorySource.INFERRED)

    assert not check_threshold(store, "Anything", work).should_propose


def test_open_proposal_is_deduplicated(store: TaskStore) -> None:
    assert store.open_proposal(name="Meetings", parent_id=None, reason="frequency")
    assert not store.open_proposal(name="Meetings", parent_id=None, reason="frequency")

    (proposal,) = store.list_open_proposals()
    store.resolve_proposal(proposal.id)
    assert store.list_open_proposals() == []
    assert store.open_proposal(name="Meetings", parent_id=None, reason="frequency")


def test_frequency_is_reported_before_overflow(store: TaskStore) -> None:
    misc = store.add_category(name="Misc", is_default=True)
    for n in range(5):
        tid = store.add_task(title=f"Loose end {n}")
        store.update_task_fields(tid, category_id=misc, category_source=CategorySource.FALLBACK)
    for i in range(3):
        store.add_suggestion(name="Chores", task_id=f"t{i}", parent_id=None)

    verdict = check_threshold(store, "Chores", misc)

    assert verdict.should_propose
    assert verdict.reason == "frequency"
