# src/aitas/pipeline/inference.py

"""
Category inference.

The model sees the existing category list and the task title and answers with
one of three actions:
- existing:        {"action": "existing", "categoryId": "<id>"}
- new_subcategory: {"action": "new_subcategory", "parentId": "<id>", "suggestedName": "<name>"}
- fallback:        {"action": "fallback"}

Whatever happens (timeout, bad JSON, made-up ids) the caller gets a usable
InferenceResult pointing at a real category.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.ports import Reasoner
from ..storage.models import Category
from .jsonutil import loads_object

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a task category classifier. "
    "Answer with a single JSON object in exactly the requested format and nothing else."
)


class InferenceAction(StrEnum):
    EXISTING = "existing"
    NEW_SUBCATEGORY = "new_subcategory"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class InferenceResult:
    category_id: str
    action: InferenceAction
    suggested_name: str | None = None
    suggested_parent_id: str | None = None


def fallback_category_id(categories: Sequence[Category]) -> str:
    """The default category, else the first one. Empty string when there are none."""
    for c in categories:
        if c.is_default:
            return c.id
    return categories[0].id if categories else ""


def build_inference_prompt(title: str, categories: Sequence[Category]) -> str:
    listing = ", ".join(f"{c.name} (id: {c.id})" for c in categories)
    return (
        "Classify the task into a category.\n\n"
        "[Existing categories]\n"
        f"{listing}\n\n"
        "[Task title]\n"
        f'"{title}"\n\n'
        "[Rules]\n"
        "1. If an existing category is the same or similar: "
        '{"action":"existing","categoryId":"<id>","confidence":"high"}\n'
        '   Consider synonyms, e.g. "business" -> "Work", "games" -> "Hobby".\n'
        "2. If a new child of an existing category fits better: "
        '{"action":"new_subcategory","parentId":"<id>","suggestedName":"<name>"}\n'
        '3. If you cannot decide: {"action":"fallback"}\n\n'
        "Output nothing except the JSON."
    )


def _find_by_name(categories: Sequence[Category], *names: Any) -> Category | None:
    wanted = {str(n) for n in names if n}
    for c in categories:
        if c.name in wanted:
            return c
    return None


def parse_inference_response(text: str, categories: Sequence[Category]) -> InferenceResult:
    fallback_id = fallback_category_id(categories)
    fallback = InferenceResult(category_id=fallback_id, action=InferenceAction.FALLBACK)

    data = loads_object(text)
    if data is None:
        logger.info("Inference: no JSON object in answer; using fallback")
        return fallback

    known_ids = {c.id for c in categories}
    action = str(data.get("action") or "").strip().lower()

    if action == InferenceAction.EXISTING and data.get("categoryId"):
        cat_id = str(data["categoryId"])
        if cat_id in known_ids:
            return InferenceResult(category_id=cat_id, action=InferenceAction.EXISTING)
        # Models sometimes answer with the name instead of the id.
        by_name = _find_by_name(categories, data.get("categoryName"), cat_id)
        if by_name is not None:
            return InferenceResult(category_id=by_name.id, action=InferenceAction.EXISTING)
        logger.warning("Inference: unknown category id %r; using fallback", cat_id)
        return fallback

    if action == InferenceAction.NEW_SUBCATEGORY and data.get("parentId") and data.get("suggestedName"):
        parent_id = str(data["parentId"])
        name = str(data["suggestedName"]).strip()
        if parent_id not in known_ids:
            parent = _find_by_name(categories, data.get("parentName"), parent_id)
            if parent is None:
                logger.warning("Inference: unknown parent id %r; using fallback", parent_id)
                return fallback
            parent_id = parent.id
        if name:
            return InferenceResult(
                category_id=fallback_id,
                action=InferenceAction.NEW_SUBCATEGORY,
                suggested_name=name,
                suggested_parent_id=parent_id,
            )

    return fallback


async def infer_category(
    title: str,
    categories: Sequence[Category],
    reasoner: Reasoner,
    *,
    timeout: float,
) -> InferenceResult:
    if not categories:
        return InferenceResult(category_id="", action=InferenceAction.FALLBACK)

    prompt = build_inference_prompt(title, categories)
    try:
        text = await reasoner.complete(SYSTEM_PROMPT, prompt, timeout)
    except Exception as e:
        logger.info("Inference: reasoning failed (%s); using fallback", e)
        return InferenceResult(category_id=fallback_category_id(categories), action=InferenceAction.FALLBACK)

    return parse_inference_response(text, categories)
