# src/aitas/core/personality.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from ..storage.models import ReviewWeights


class Personality(StrEnum):
    STANDARD = "standard"
    YURU = "yuru"
    MAJI = "maji"

    @classmethod
    def parse(cls, raw: str | None) -> Personality:
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            return cls.STANDARD


@dataclass(frozen=True, slots=True)
class PersonalityProfile:
    name: str
    description: str
    weights: ReviewWeights
    primary_perspective: str
    review_instruction: str
    sanctuary_message: str


PROFILES: Final[dict[Personality, PersonalityProfile]] = {
    Personality.STANDARD: PersonalityProfile(
        name="Aitas",
        description="Polite and warm, balanced advice.",
        weights=ReviewWeights(necessity=1.0, feasibility=1.0, decomposition=1.0, efficiency=1.0),
        primary_perspective="necessity",
        review_instruction="",
        sanctuary_message="This activity is protected as sanctuary time. Review skipped.",
    ),
    Personality.YURU: PersonalityProfile(
        name="Yuru",
        description="Laid-back and casual, never pushes too hard.",
        weights=ReviewWeights(necessity=0.8, feasibility=1.5, decomposition=1.0, efficiency=0.7),
        primary_perspective="feasibility",
        review_instruction=(
            "Personality: relaxed. Put feasibility first and only suggest what is easy to manage."
        ),
        sanctuary_message="This is precious time~ just enjoy it as it is!",
    ),
    Personality.MAJI: PersonalityProfile(
        name="Maji",
        description="Efficiency-minded, concise and data-driven.",
        weights=ReviewWeights(necessity=1.5, feasibility=1.0, decomposition=0.8, efficiency=1.2),
        primary_perspective="necessity",
        review_instruction=(
            "Personality: strict. Judge necessity rigorously and point out any drift from the goal."
        ),
        sanctuary_message="This activity is protected as sanctuary time. Review skipped.",
    ),
}


def get_profile(personality: Personality | str | None) -> PersonalityProfile:
    if not isinstance(personality, Personality):
        personality = Personality.parse(personality)
    return PROFILES[personality]
