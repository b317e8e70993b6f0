# src/aitas/pipeline/review.py

"""
Four-perspective task review.

Perspectives: necessity, feasibility, decomposition, efficiency. Each gets a
0-100 score and a one-line summary; the overall score is their weighted mean
using the active personality's (or the user's) weights.

Sanctuary tasks are never sent to the model.
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime
from typing import Any

from ..core.personality import Personality, get_profile
from ..core.ports import Reasoner
from ..storage.models import (
    PERSPECTIVES,
    Category,
    Goal,
    PortfolioType,
    ReviewPerspective,
    ReviewResult,
    ReviewWeights,
    Task,
)
from .jsonutil import loads_object

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a task review assistant. "
    "Answer with a single JSON object in exactly the requested format and nothing else."
)

NEUTRAL_SCORE = 50
NEUTRAL_SUMMARY = "Could not evaluate"
SANCTUARY_SUMMARY = "Sanctuary task"
MISSING_SUMMARY = "No evaluation"


def _now() -> datetime:
    return datetime.now(UTC)


def compute_overall_score(perspectives: dict[str, ReviewPerspective], weights: ReviewWeights) -> int:
    w = weights.as_dict()
    total = sum(w.values())
    if total == 0 or not math.isfinite(total):
        return NEUTRAL_SCORE
    weighted = sum(perspectives[name].score * w[name] for name in PERSPECTIVES)
    return round(weighted / total)


def sanctuary_review(personality: Personality | str | None, now: datetime | None = None) -> ReviewResult:
    profile = get_profile(personality)
    return ReviewResult(
        **{name: ReviewPerspective(score=100, summary=SANCTUARY_SUMMARY) for name in PERSPECTIVES},
        overall_score=100,
        is_sanctuary=True,
        reviewed_at=now or _now(),
        sanctuary_message=profile.sanctuary_message,
    )


def neutral_review(now: datetime | None = None) -> ReviewResult:
    return ReviewResult(
        **{name: ReviewPerspective(score=NEUTRAL_SCORE, summary=NEUTRAL_SUMMARY) for name in PERSPECTIVES},
        overall_score=NEUTRAL_SCORE,
        is_sanctuary=False,
        reviewed_at=now or _now(),
    )


def build_review_prompt(
    task: Task,
    *,
    personality: Personality | str | None,
    category: Category | None,
    goal: Goal | None,
    care_mode_active: bool,
    today_task_count: int,
    guidance_hint: str | None = None,
) -> str:
    profile = get_profile(personality)

    parts: list[str] = [
        "Review the task below from four perspectives.",
        "",
        "[Task]",
        f"Title: {task.title}",
    ]
    if task.description:
        parts.append(f"Description: {task.description}")
    parts.append(f"Category: {category.name if category else 'Uncategorized'}")
    parts.append(f"Portfolio: {task.portfolio_type.value}")
    if task.due_date:
        parts.append(f"Due: {task.due_date.isoformat()}")
    parts.append("")

    if goal is not None:
        parts.append("[Linked long-term goal]")
        parts.append(f"Title: {goal.title}")
        if goal.description:
            parts.append(f"Description: {goal.description}")
        if goal.target_date:
            parts.append(f"Target date: {goal.target_date.isoformat()}")
        parts.append("")

    parts.append("[Situation]")
    parts.append(f"Tasks today: {today_task_count}")
    if care_mode_active:
        parts.append("Care mode: ON (the user is worn out)")
    if guidance_hint:
        parts.append(f"Guidance: {guidance_hint}")
    parts.append("")

    if task.portfolio_type == PortfolioType.DRIVE:
        necessity = "judge strictly how well it serves the linked goal"
    else:
        necessity = "check whether it is essential for keeping daily life running"
    parts.append("[Perspectives]")
    parts.append(f"1. necessity: {necessity}")
    parts.append(
        "2. feasibility: judge against today's load" + (" (care mode is on)" if care_mode_active else "")
    )
    parts.append("3. decomposition: if the title is abstract, propose the smallest concrete subtasks")
    parts.append("4. efficiency: suggest shortcuts or more efficient means")
    parts.append("")

    if profile.review_instruction:
        parts.append(profile.review_instruction)
        parts.append("")

    parts.append("Answer with this JSON only:")
    parts.append("{")
    parts.append('  "necessity": {"score": 0-100, "summary": "one line", "suggestion": "improvement"},')
    parts.append('  "feasibility": {"score": 0-100, "summary": "one line", "suggestion": "improvement"},')
    parts.append(
        '  "decomposition": {"score": 0-100, "summary": "one line", "suggestion": "improvement", '
        '"suggestedSubTasks": ["subtask 1", ...]},'
    )
    parts.append('  "efficiency": {"score": 0-100, "summary": "one line", "suggestion": "improvement"}')
    parts.append("}")
    return "\n".join(parts)


def _to_perspective(obj: Any) -> ReviewPerspective:
    if not isinstance(obj, dict):
        return ReviewPerspective(score=NEUTRAL_SCORE, summary=NEUTRAL_SUMMARY)

    raw_score = obj.get("score")
    if isinstance(raw_score, (int, float)) and not isinstance(raw_score, bool):
        score = int(round(max(0.0, min(100.0, float(raw_score)))))
    else:
        score = NEUTRAL_SCORE

    summary = obj.get("summary")
    suggestion = obj.get("suggestion")
    return ReviewPerspective(
        score=score,
        summary=summary if isinstance(summary, str) else MISSING_SUMMARY,
        suggestion=suggestion if isinstance(suggestion, str) else None,
    )


def parse_review_response(text: str) -> dict[str, ReviewPerspective] | None:
    """Perspectives keyed by name, or None if the answer holds no JSON object."""
    data = loads_object(text)
    if data is None:
        return None

    out = {name: _to_perspective(data.get(name)) for name in PERSPECTIVES}

    decomp = data.get("decomposition")
    if isinstance(decomp, dict):
        subs = decomp.get("suggestedSubTasks", decomp.get("suggested_subtasks"))
        if isinstance(subs, list):
            out["decomposition"].suggested_subtasks = [s for s in subs if isinstance(s, str)]
    return out


async def review_task(
    task: Task,
    reasoner: Reasoner,
    *,
    personality: Personality | str | None,
    weights: ReviewWeights,
    category: Category | None = None,
    goal: Goal | None = None,
    care_mode_active: bool = False,
    today_task_count: int = 0,
    guidance_hint: str | None = None,
    timeout: float,
    now: datetime | None = None,
) -> ReviewResult:
    if task.is_sanctuary:
        return sanctuary_review(personality, now)

    prompt = build_review_prompt(
        task,
        personality=personality,
        category=category,
        goal=goal,
        care_mode_active=care_mode_active,
        today_task_count=today_task_count,
        guidance_hint=guidance_hint,
    )
    try:
        text = await reasoner.complete(SYSTEM_PROMPT, prompt, timeout)
    except Exception as e:
        logger.info("Review: reasoning failed for task=%s (%s); neutral result", task.id, e)
        return neutral_review(now)

    perspectives = parse_review_response(text)
    if perspectives is None:
        logger.info("Review: unparseable answer for task=%s; neutral result", task.id)
        return neutral_review(now)

    return ReviewResult(
        **perspectives,
        overall_score=compute_overall_score(perspectives, weights),
        is_sanctuary=False,
        reviewed_at=now or _now(),
    )
