# src/aitas/core/preferences.py

"""
User preferences stored in the settings table.

Environment settings provide the defaults; values written by the user through
the console override them.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any, Final

from ..storage.models import ReviewWeights
from .personality import Personality, get_profile
from .ports import TaskRepo

KEY_PERSONALITY: Final[str] = "personality"
KEY_SANCTUARY_KEYWORDS: Final[str] = "sanctuaryKeywords"
KEY_REVIEW_WEIGHTS: Final[str] = "reviewWeights"


def load_personality(store: TaskRepo, settings: Any) -> Personality:
    raw = store.get_setting(KEY_PERSONALITY) or getattr(settings, "default_personality", None)
    return Personality.parse(raw)


def save_personality(store: TaskRepo, personality: Personality) -> None:
    store.set_settings({KEY_PERSONALITY: Personality(personality).value})


def load_sanctuary_keywords(store: TaskRepo, settings: Any) -> list[str]:
    stored = store.get_json_setting(KEY_SANCTUARY_KEYWORDS)
    if isinstance(stored, list):
        return [str(k).strip() for k in stored if str(k).strip()]
    return list(getattr(settings, "sanctuary_keywords", ()) or ())


def save_sanctuary_keywords(store: TaskRepo, keywords: Iterable[str]) -> list[str]:
    clean: list[str] = []
    for kw in keywords:
        kw = kw.strip()
        if kw and kw not in clean:
            clean.append(kw)
    store.set_settings({KEY_SANCTUARY_KEYWORDS: json.dumps(clean, ensure_ascii=False)})
    return clean


def load_review_weights(store: TaskRepo, personality: Personality) -> ReviewWeights:
    """Personality defaults with the user's overrides (if any) on top."""
    base = get_profile(personality).weights
    override = store.get_json_setting(KEY_REVIEW_WEIGHTS)
    if override is None:
        return base
    return ReviewWeights.from_mapping(override, base=base)


def save_review_weights(store: TaskRepo, weights: ReviewWeights) -> None:
    store.set_settings({KEY_REVIEW_WEIGHTS: json.dumps(weights.as_dict())})


def reset_review_weights(store: TaskRepo) -> None:
    store.set_settings({KEY_REVIEW_WEIGHTS: ""})
