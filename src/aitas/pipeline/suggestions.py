# src/aitas/pipeline/suggestions.py

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Final

from ..core.ports import TaskRepo

FREQUENCY_THRESHOLD: Final[int] = 3
FREQUENCY_WINDOW_DAYS: Final[int] = 7
OVERFLOW_THRESHOLD: Final[int] = 5

REASON_FREQUENCY: Final[str] = "frequency"
REASON_OVERFLOW: Final[str] = "uncategorized_overflow"


@dataclass(frozen=True, slots=True)
class ThresholdResult:
    should_propose: bool
    reason: str = ""


def check_threshold(
    store: TaskRepo,
    suggested_name: str,
    category_id: str,
    now: datetime | None = None,
    *,
    window_days: int = FREQUENCY_WINDOW_DAYS,
) -> ThresholdResult:
    """
    Decide whether a subcategory should be proposed to the user.

    Expects the current suggestion to be logged already, so the third
    identical name inside the window is the one that fires.
    """
    now_ts = now.timestamp() if now is not None else time.time()

    recent = store.count_recent_suggestions_by_name(suggested_name, days=window_days, now_ts=now_ts)
    if recent >= FREQUENCY_THRESHOLD:
        return ThresholdResult(True, REASON_FREQUENCY)

    if category_id and store.count_fallback_tasks_in_category(category_id) >= OVERFLOW_THRESHOLD:
        return ThresholdResult(True, REASON_OVERFLOW)

    return ThresholdResult(False, "")
