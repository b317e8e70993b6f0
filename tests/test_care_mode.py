# tests/test_care_mode.py

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from aitas.care.care_mode import CareModeController
from aitas.storage.models import RescheduleReason, SelfReportLevel
from aitas.storage.store import TaskStore

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)
TODAY = date(2026, 3, 10)


@pytest.fixture()
def care(store: TaskStore) -> CareModeController:
    return CareModeController(store)


def test_rest_and_struggling_durations(care: CareModeController) -> None:
    rest = care.enter(RescheduleReason.REST, now=NOW)
    assert rest.active
    assert rest.expires_at == NOW + timedelta(days=1)

    struggling = care.enter(RescheduleReason.STRUGGLING, now=NOW)
    assert struggling.expires_at == NOW + timedelta(days=3)
    assert care.load(NOW).reason == RescheduleReason.STRUGGLING


def test_schedule_change_never_activates(care: CareModeController) -> None:
    with pytest.raises(ValueError):
        care.enter(RescheduleReason.SCHEDULE_CHANGE, now=NOW)
    assert not care.is_active(NOW)


def test_lazy_expiry_on_load(care: CareModeController, store: TaskStore) -> None:
    care.enter(RescheduleReason.REST, now=NOW)
    expires = NOW + timedelta(days=1)

    assert care.load(expires - timedelta(seconds=1)).active

    state = care.load(expires + timedelta(seconds=1))
    assert not state.active
    # Expiry is written back, not only reported.
    assert store.get_setting("careModeActive") == "false"


def test_good_self_report_exits_care_mode(care: CareModeController, store: TaskStore) -> None:
    care.enter(RescheduleReason.STRUGGLING)

    after_tough = care.record_self_report(SelfReportLevel.TOUGH, today=TODAY)
    assert after_tough.active

    after_good = care.record_self_report(SelfReportLevel.GOOD, today=TODAY)
    assert not after_good.active

    report = care.load_self_report()
    assert report is not None
    assert report.level == SelfReportLevel.GOOD
    assert report.reported_on == TODAY


def test_bulk_reschedule_moves_only_incomplete_tasks_due_today(care: CareModeController, store: TaskStore) -> None:
    due_today = store.add_task(title="Due today", due_date=TODAY)
    done_today = store.add_task(title="Already done", due_date=TODAY)
    overdue = store.add_task(title="Overdue", due_date=TODAY - timedelta(days=2))
    undated = store.add_task(title="Someday")
    store.set_task_completed(done_today, True)

    outcome = care.bulk_reschedule(RescheduleReason.REST, today=TODAY, now=NOW)

    assert outcome.task_ids == [due_today]
    assert outcome.new_due == TODAY + timedelta(days=1)
    assert outcome.care.active

    moved = store.get_task(due_today)
    assert moved is not None
    assert moved.due_date == TODAY + timedelta(days=1)
    assert moved.reschedule_count == 1
    assert moved.original_due_date == TODAY

    for tid in (done_today, overdue, undated):
        t = store.get_task(tid)
        assert t is not None and t.reschedule_count == 0

    history = store.list_reschedule_history()
    assert len(history) == 1
    assert history[0].reason == RescheduleReason.REST
    assert history[0].task_ids == [due_today]


def test_schedule_change_reschedule_logs_but_keeps_care_state(care: CareModeController, store: TaskStore) -> None:
    outcome = care.bulk_reschedule(RescheduleReason.SCHEDULE_CHANGE, today=TODAY, now=NOW)

    assert outcome.task_ids == []
    assert not outcome.care.active
    # Logged even when nothing moved.
    history = store.list_reschedule_history()
    assert [h.reason for h in history] == [RescheduleReason.SCHEDULE_CHANGE]


def test_reschedule_count_only_increases(care: CareModeController, store: TaskStore) -> None:
    tid = store.add_task(title="Chore", due_date=TODAY)
    care.bulk_reschedule(RescheduleReason.SCHEDULE_CHANGE, today=TODAY, now=NOW)
    care.bulk_reschedule(RescheduleReason.SCHEDULE_CHANGE, today=TODAY + timedelta(days=1), now=NOW)

    t = store.get_task(tid)
    assert t is not None
    assert t.reschedule_count == 2
    assert t.due_date == TODAY + timedelta(days=2)
