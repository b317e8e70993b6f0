# src/aitas/pipeline/sanctuary.py

from __future__ import annotations

from collections.abc import Iterable

from ..storage.models import PortfolioType, Task


def is_sanctuary(task: Task, keywords: Iterable[str]) -> bool:
    """
    Sanctuary = protected restorative time that is never critiqued.

    A task is sanctuary when its portfolio is "recharge", when it is already
    flagged, or when its title contains any keyword (case-insensitive).
    """
    if task.portfolio_type == PortfolioType.RECHARGE:
        return True
    if task.is_sanctuary:
        return True

    title = (task.title or "").lower()
    for kw in keywords:
        kw = (kw or "").strip().lower()
        if kw and kw in title:
            return True
    return False
