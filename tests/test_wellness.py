# tests/test_wellness.py

from __future__ import annotations

from datetime import date, timedelta

import pytest

from aitas.scoring.wellness import (
    CompletionHistory,
    DayStats,
    ScoreLabel,
    SelfReport,
    TypeStats,
    calculate_score,
    dynamic_weights,
    load_history,
    quantitative_score,
    score_to_label,
    streak_bonus,
    trend_score,
)
from aitas.storage.models import SelfReportLevel, TaskType
from aitas.storage.store import TaskStore

TODAY = date(2026, 3, 10)


def _daily(rates: list[tuple[int, int]]) -> list[DayStats]:
    start = TODAY - timedelta(days=len(rates) - 1)
    return [DayStats(day=start + timedelta(days=i), total=t, completed=c) for i, (t, c) in enumerate(rates)]


def test_no_history_and_no_report_is_neutral() -> None:
    result = calculate_score(CompletionHistory(), None, False, today=TODAY)
    # 50*0.2 + 50*0.1 + 50*0.7
    assert result.score == 50
    assert result.label == ScoreLabel.SLOW_START
    assert result.breakdown.data_available_days == 0


def test_care_mode_caps_score_at_50() -> None:
    history = CompletionHistory(
        by_type=[TypeStats(task_type="normal", total=7, completed=7)],
        daily=_daily([(1, 1)] * 7),
    )
    report = SelfReport(level=SelfReportLevel.GOOD, reported_on=TODAY)

    free = calculate_score(history, report, False, perfect_streak=7, today=TODAY)
    assert free.score == 94  # 50 + 15 + 14 + 15

    capped = calculate_score(history, report, True, perfect_streak=7, today=TODAY)
    assert capped.score == 50
    assert capped.label == ScoreLabel.SLOW_START


def test_self_report_only_counts_today() -> None:
    stale = SelfReport(level=SelfReportLevel.TOUGH, reported_on=TODAY - timedelta(days=1))
    fresh = SelfReport(level=SelfReportLevel.TOUGH, reported_on=TODAY)

    assert calculate_score(CompletionHistory(), stale, False, today=TODAY).score == 50
    # 10 + 5 + (50 - 20) * 0.7
    assert calculate_score(CompletionHistory(), fresh, False, today=TODAY).score == 36


def test_quantitative_uses_task_type_weights() -> None:
    history = CompletionHistory(
        by_type=[
            TypeStats(task_type=TaskType.ROUTINE.value, total=10, completed=10),
            TypeStats(task_type=TaskType.URGENT.value, total=10, completed=0),
        ]
    )
    assert quantitative_score(history) == pytest.approx(100 * 0.6 / 0.7)


def test_trend_compares_last_three_days_with_all() -> None:
    history = CompletionHistory(daily=_daily([(1, 0), (1, 0), (1, 0), (1, 1), (1, 1)]))
    # avg all = 40, avg last 3 = 66.67
    assert trend_score(history) == pytest.approx((200 / 3 - 40) * 100 / 30)

    assert trend_score(CompletionHistory(daily=_daily([(1, 1)]))) == 0.0


def test_trend_is_clamped() -> None:
    history = CompletionHistory(daily=_daily([(1, 1)] * 4 + [(1, 0)] * 3))
    assert trend_score(history) == -100.0


@pytest.mark.parametrize(
    ("score", "label"),
    [
        (0, ScoreLabel.CARE_NEEDED),
        (25, ScoreLabel.CARE_NEEDED),
        (26, ScoreLabel.SLOW_START),
        (50, ScoreLabel.SLOW_START),
        (51, ScoreLabel.ON_TRACK),
        (75, ScoreLabel.ON_TRACK),
        (76, ScoreLabel.EXCELLENT),
    ],
)
def test_label_boundaries(score: int, label: ScoreLabel) -> None:
    assert score_to_label(score) == label


def test_dynamic_weights_shift_towards_data() -> None:
    assert dynamic_weights(2) == (0.2, 0.1, 0.7)
    assert dynamic_weights(3) == (0.35, 0.25, 0.4)
    assert dynamic_weights(4) == (0.35, 0.25, 0.4)
    assert dynamic_weights(5) == (0.5, 0.3, 0.2)


def test_streak_bonus_table() -> None:
    assert streak_bonus(8, False) == 15
    assert streak_bonus(3, False) == 10
    assert streak_bonus(1, True) == 5
    assert streak_bonus(0, True) == 5
    assert streak_bonus(0, False) == 0


def test_load_history_reads_store_window(tmp_path) -> None:
    store = TaskStore(tmp_path / "w.sqlite3")
    a = store.add_task(title="Stretch", due_date=TODAY, task_type=TaskType.ROUTINE)
    store.add_task(title="Report", due_date=TODAY - timedelta(days=1))
    store.add_task(title="Tomorrow thing", due_date=TODAY + timedelta(days=1))
    store.add_task(title="Old thing", due_date=TODAY - timedelta(days=10))
    store.set_task_completed(a, True)

    history = load_history(store, TODAY)

    assert [d.day for d in history.daily] == [TODAY - timedelta(days=1), TODAY]
    by_type = {t.task_type: (t.total, t.completed) for t in history.by_type}
    assert by_type == {"routine": (1, 1), "normal": (1, 0)}


@pytest.mark.parametrize(
    "report",
    [
        None,
        SelfReport(level=SelfReportLevel.GOOD, reported_on=TODAY),
        SelfReport(level=SelfReportLevel.TOUGH, reported_on=TODAY),
    ],
)
@pytest.mark.parametrize("streak", [0, 3, 7])
def test_score_never_drops_as_completion_rises(report: SelfReport | None, streak: int) -> None:
    daily = _daily([(2, 1)] * 6)
    scores = [
        calculate_score(
            CompletionHistory(by_type=[TypeStats(task_type="normal", total=10, completed=done)], daily=daily),
            report,
            False,
            perfect_streak=streak,
            today=TODAY,
        ).score
        for done in range(11)
    ]
    assert scores == sorted(scores)


@pytest.mark.parametrize(
    "report",
    [None, SelfReport(level=SelfReportLevel.NORMAL, reported_on=TODAY)],
)
@pytest.mark.parametrize("streak", [0, 1])
def test_score_never_drops_as_trend_improves(report: SelfReport | None, streak: int) -> None:
    by_type = [TypeStats(task_type="normal", total=20, completed=10)]
    trends: list[float] = []
    scores: list[int] = []
    for done in range(13):
        recent = [min(4, done), min(4, max(0, done - 4)), max(0, done - 8)]
        history = CompletionHistory(by_type=by_type, daily=_daily([(4, 2), (4, 2)] + [(4, c) for c in recent]))
        assert history.data_available_days >= 5
        trends.append(trend_score(history))
        scores.append(calculate_score(history, report, False, perfect_streak=streak, today=TODAY).score)

    assert trends == sorted(trends)
    assert trends[0] < trends[-1]
    assert scores == sorted(scores)
