# src/aitas/scoring/wellness.py

"""
Wellness score: one 0-100 number describing how healthy the current task load is.

Three measurements over the trailing 7 days are blended with weights that
depend on how much history exists:
- quantitative: completion rate per task type (routine/normal/urgent)
- trend: 3-day vs 7-day moving average of the daily completion rate
- self-report: today's "good / normal / tough" answer

A streak bonus is added after weighting. Care mode caps the result at 50.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Final

from ..core.ports import TaskRepo
from ..storage.models import SelfReportLevel, TaskType

WINDOW_DAYS: Final[int] = 7

TASK_TYPE_WEIGHTS: Final[dict[str, float]] = {
    TaskType.ROUTINE.value: 0.6,
    TaskType.NORMAL.value: 0.3,
    TaskType.URGENT.value: 0.1,
}

SELF_REPORT_SCORES: Final[dict[SelfReportLevel, int]] = {
    SelfReportLevel.GOOD: 20,
    SelfReportLevel.NORMAL: 0,
    SelfReportLevel.TOUGH: -20,
}

STREAK_BONUS: Final[dict[str, int]] = {
    "perfect_7plus": 15,
    "perfect_3to6": 10,
    "perfect_1to2": 5,
    "soft_active": 5,
    "none": 0,
    "broken": -5,
}

# 30 points of daily-rate swing map to +/-100.
TREND_SCALE: Final[float] = 100.0 / 30.0

CARE_MODE_CAP: Final[int] = 50


class ScoreLabel(StrEnum):
    CARE_NEEDED = "care_needed"
    SLOW_START = "slow_start"
    ON_TRACK = "on_track"
    EXCELLENT = "excellent"


@dataclass(frozen=True, slots=True)
class LabelGuidance:
    text: str
    hint: str


# `hint` is operator guidance injected into the review prompt.
LABEL_GUIDANCE: Final[dict[ScoreLabel, LabelGuidance]] = {
    ScoreLabel.CARE_NEEDED: LabelGuidance(
        text="Needs care",
        hint=(
            "The user is stalled. Suggest 5-10 minute baby steps, recommend fewer tasks, "
            "and put encouragement first."
        ),
    ),
    ScoreLabel.SLOW_START: LabelGuidance(
        text="Slow start",
        hint=(
            "The user is recovering. Focus on small 15-30 minute tasks and recommend "
            "at most three tasks a day."
        ),
    ),
    ScoreLabel.ON_TRACK: LabelGuidance(
        text="On track",
        hint="The user is doing well. Give standard subtask breakdowns and balanced suggestions.",
    ),
    ScoreLabel.EXCELLENT: LabelGuidance(
        text="Excellent",
        hint="The user is in great shape. Suggest stretch goals and milestone-style plans.",
    ),
}


@dataclass(frozen=True, slots=True)
class TypeStats:
    task_type: str
    total: int
    completed: int


@dataclass(frozen=True, slots=True)
class DayStats:
    day: date
    total: int
    completed: int

    @property
    def rate(self) -> float:
        return (self.completed / self.total) * 100.0 if self.total > 0 else 0.0


@dataclass(frozen=True, slots=True)
class CompletionHistory:
    by_type: list[TypeStats] = field(default_factory=list)
    daily: list[DayStats] = field(default_factory=list)  # oldest first

    @property
    def data_available_days(self) -> int:
        return len(self.daily)


@dataclass(frozen=True, slots=True)
class SelfReport:
    level: SelfReportLevel
    reported_on: date


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    quantitative: int  # 0..100, before weighting
    trend: int  # -100..100
    self_report: int  # -20..20
    streak_bonus: int  # -5..15
    data_available_days: int


@dataclass(frozen=True, slots=True)
class WellnessScore:
    score: int
    label: ScoreLabel
    breakdown: ScoreBreakdown

    @property
    def guidance(self) -> LabelGuidance:
        return LABEL_GUIDANCE[self.label]


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def score_to_label(score: float) -> ScoreLabel:
    if score <= 25:
        return ScoreLabel.CARE_NEEDED
    if score <= 50:
        return ScoreLabel.SLOW_START
    if score <= 75:
        return ScoreLabel.ON_TRACK
    return ScoreLabel.EXCELLENT


def quantitative_score(history: CompletionHistory) -> float:
    if not history.by_type:
        return 50.0

    weighted_sum = 0.0
    weight_total = 0.0
    for row in history.by_type:
        weight = TASK_TYPE_WEIGHTS.get(row.task_type, TASK_TYPE_WEIGHTS[TaskType.NORMAL.value])
        rate = (row.completed / row.total) * 100.0 if row.total > 0 else 50.0
        weighted_sum += rate * weight
        weight_total += weight

    score = weighted_sum / weight_total if weight_total > 0 else 50.0
    return _clamp(score, 0.0, 100.0)


def trend_score(history: CompletionHistory) -> float:
    """Positive = improving. 0 when fewer than 2 days of data."""
    if len(history.daily) < 2:
        return 0.0

    rates = [d.rate for d in history.daily]
    avg_all = sum(rates) / len(rates)
    last3 = rates[-3:]
    avg3 = sum(last3) / len(last3)
    return _clamp((avg3 - avg_all) * TREND_SCALE, -100.0, 100.0)


def self_report_score(report: SelfReport | None, today: date | None = None) -> int:
    """Only today's report counts."""
    if report is None:
        return 0
    today = today or date.today()
    if report.reported_on != today:
        return 0
    return SELF_REPORT_SCORES.get(report.level, 0)


def streak_bonus(perfect_streak: int, soft_streak_active: bool) -> int:
    if perfect_streak >= 7:
        return STREAK_BONUS["perfect_7plus"]
    if perfect_streak >= 3:
        return STREAK_BONUS["perfect_3to6"]
    if perfect_streak >= 1:
        return STREAK_BONUS["perfect_1to2"]
    if soft_streak_active:
        return STREAK_BONUS["soft_active"]
    return STREAK_BONUS["none"]


def dynamic_weights(data_available_days: int) -> tuple[float, float, float]:
    """(quantitative, trend, self_report) weights for the amount of history we have."""
    if data_available_days < 3:
        return 0.2, 0.1, 0.7
    if data_available_days < 5:
        return 0.35, 0.25, 0.4
    return 0.5, 0.3, 0.2


def calculate_score(
    history: CompletionHistory,
    self_report: SelfReport | None,
    care_mode_active: bool,
    *,
    perfect_streak: int = 0,
    soft_streak_active: bool = False,
    today: date | None = None,
) -> WellnessScore:
    quant = quantitative_score(history)
    trend = trend_score(history)
    self_pts = self_report_score(self_report, today)
    bonus = streak_bonus(perfect_streak, soft_streak_active)

    w_quant, w_trend, w_self = dynamic_weights(history.data_available_days)

    trend_normalized = (trend + 100.0) / 2.0
    composite = (
        quant * w_quant
        + trend_normalized * w_trend
        + (50.0 + self_pts) * w_self
        + bonus
    )

    if care_mode_active:
        composite = min(composite, float(CARE_MODE_CAP))

    final = int(_clamp(round(composite), 0, 100))

    return WellnessScore(
        score=final,
        label=score_to_label(final),
        breakdown=ScoreBreakdown(
            quantitative=round(quant),
            trend=round(trend),
            self_report=self_pts,
            streak_bonus=bonus,
            data_available_days=history.data_available_days,
        ),
    )


def history_from_rows(rows: list[tuple[str, str, int, int]]) -> CompletionHistory:
    """Fold (day, task_type, total, completed) rows into per-type and per-day totals."""
    by_type: dict[str, list[int]] = {}
    by_day: dict[str, list[int]] = {}
    for day, task_type, total, done in rows:
        t = by_type.setdefault(task_type, [0, 0])
        t[0] += total
        t[1] += done
        d = by_day.setdefault(day, [0, 0])
        d[0] += total
        d[1] += done

    daily: list[DayStats] = []
    for day in sorted(by_day):
        try:
            parsed = date.fromisoformat(day[:10])
        except ValueError:
            continue
        total, done = by_day[day]
        daily.append(DayStats(day=parsed, total=total, completed=done))

    return CompletionHistory(
        by_type=[TypeStats(task_type=k, total=v[0], completed=v[1]) for k, v in by_type.items()],
        daily=daily,
    )


def load_history(store: TaskRepo, today: date | None = None) -> CompletionHistory:
    return history_from_rows(store.completion_rows(days=WINDOW_DAYS, today=today))
