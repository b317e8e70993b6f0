# src/aitas/storage/models.py

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any


class _DbEnum(StrEnum):
    """StrEnum with a tolerant constructor for raw DB values."""

    @classmethod
    def _default(cls) -> Any:
        return None

    @classmethod
    def from_db(cls, raw: str | None) -> Any:
        if not raw:
            return cls._default()
        try:
            return cls(raw)
        except ValueError:
            return cls._default()


class Priority(_DbEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def _default(cls) -> Priority:
        return cls.MEDIUM


class PortfolioType(_DbEnum):
    """Coarse life-role of a task: goal-driving, upkeep, restorative."""

    DRIVE = "drive"
    MAINTENANCE = "maintenance"
    RECHARGE = "recharge"

    @classmethod
    def _default(cls) -> PortfolioType:
        return cls.MAINTENANCE


class TaskType(_DbEnum):
    ROUTINE = "routine"
    NORMAL = "normal"
    URGENT = "urgent"

    @classmethod
    def _default(cls) -> TaskType:
        return cls.NORMAL


class RecurringPattern(_DbEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ClassificationStatus(_DbEnum):
    """
    Per-task pipeline progress.

    Notes:
    - "pending" is the only status replayed at startup.
    - "failed" is terminal until the user resets it.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def _default(cls) -> ClassificationStatus:
        return cls.PENDING


class CategorySource(_DbEnum):
    MANUAL = "manual"
    INFERRED = "inferred"
    FALLBACK = "fallback"


class ScalingWeight(_DbEnum):
    STRICT = "strict"
    NORMAL = "normal"
    RELAXED = "relaxed"

    @classmethod
    def _default(cls) -> ScalingWeight:
        return cls.NORMAL


class RescheduleReason(_DbEnum):
    SCHEDULE_CHANGE = "schedule_change"
    REST = "rest"
    STRUGGLING = "struggling"


class SelfReportLevel(_DbEnum):
    GOOD = "good"
    NORMAL = "normal"
    TOUGH = "tough"


@dataclass(slots=True)
class SubTask:
    id: str
    task_id: str
    title: str
    completed: bool = False


@dataclass(slots=True)
class ReviewPerspective:
    score: int
    summary: str
    suggestion: str | None = None
    suggested_subtasks: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"score": self.score, "summary": self.summary}
        if self.suggestion is not None:
            out["suggestion"] = self.suggestion
        if self.suggested_subtasks is not None:
            out["suggested_subtasks"] = list(self.suggested_subtasks)
        return out

    @classmethod
    def from_dict(cls, data: Any) -> ReviewPerspective:
        if not isinstance(data, dict):
            return cls(score=50, summary="")
        subs = data.get("suggested_subtasks")
        return cls(
            score=int(data.get("score", 50)),
            summary=str(data.get("summary", "")),
            suggestion=data.get("suggestion"),
            suggested_subtasks=[str(s) for s in subs] if isinstance(subs, list) else None,
        )


PERSPECTIVES = ("necessity", "feasibility", "decomposition", "efficiency")


@dataclass(slots=True)
class ReviewResult:
    necessity: ReviewPerspective
    feasibility: ReviewPerspective
    decomposition: ReviewPerspective
    efficiency: ReviewPerspective
    overall_score: int
    is_sanctuary: bool
    reviewed_at: datetime
    sanctuary_message: str | None = None

    def perspectives(self) -> dict[str, ReviewPerspective]:
        return {name: getattr(self, name) for name in PERSPECTIVES}

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {name: p.to_dict() for name, p in self.perspectives().items()}
        out["overall_score"] = self.overall_score
        out["is_sanctuary"] = self.is_sanctuary
        out["reviewed_at"] = self.reviewed_at.isoformat()
        if self.sanctuary_message is not None:
            out["sanctuary_message"] = self.sanctuary_message
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewResult:
        return cls(
            necessity=ReviewPerspective.from_dict(data.get("necessity")),
            feasibility=ReviewPerspective.from_dict(data.get("feasibility")),
            decomposition=ReviewPerspective.from_dict(data.get("decomposition")),
            efficiency=ReviewPerspective.from_dict(data.get("efficiency")),
            overall_score=int(data.get("overall_score", 50)),
            is_sanctuary=bool(data.get("is_sanctuary", False)),
            reviewed_at=datetime.fromisoformat(str(data["reviewed_at"])),
            sanctuary_message=data.get("sanctuary_message"),
        )


@dataclass(slots=True)
class Task:
    id: str
    title: str
    created_at: float
    updated_at: float

    description: str | None = None
    completed: bool = False
    completed_at: float | None = None
    due_date: date | None = None
    original_due_date: date | None = None
    priority: Priority = Priority.MEDIUM
    is_recurring: bool = False
    recurring_pattern: RecurringPattern | None = None
    task_type: TaskType = TaskType.NORMAL

    category_id: str | None = None
    category_source: CategorySource | None = None
    portfolio_type: PortfolioType = PortfolioType.MAINTENANCE
    is_sanctuary: bool = False
    reschedule_count: int = 0
    classification_status: ClassificationStatus = ClassificationStatus.PENDING
    review: ReviewResult | None = None
    goal_id: str | None = None

    subtasks: list[SubTask] = field(default_factory=list)


@dataclass(slots=True)
class Category:
    id: str
    name: str
    icon: str = "folder-outline"
    color: str = "#9CA3AF"
    sort_order: int = 0
    is_default: bool = False
    scaling_weight: ScalingWeight = ScalingWeight.NORMAL
    parent_id: str | None = None


@dataclass(slots=True)
class Goal:
    id: str
    title: str
    description: str | None = None
    target_date: date | None = None


@dataclass(frozen=True, slots=True)
class PendingSuggestion:
    id: str
    name: str
    task_id: str
    parent_id: str | None
    reason: str
    created_at: float


@dataclass(frozen=True, slots=True)
class CategoryProposal:
    id: str
    name: str
    parent_id: str | None
    reason: str
    created_at: float
    resolved: bool = False


@dataclass(frozen=True, slots=True)
class RescheduleRecord:
    id: str
    reason: RescheduleReason
    task_ids: list[str]
    created_at: float


@dataclass(frozen=True, slots=True)
class CareModeState:
    active: bool = False
    reason: RescheduleReason | None = None
    expires_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ReviewWeights:
    necessity: float = 1.0
    feasibility: float = 1.0
    decomposition: float = 1.0
    efficiency: float = 1.0

    def as_dict(self) -> dict[str, float]:
        return {name: float(getattr(self, name)) for name in PERSPECTIVES}

    @classmethod
    def from_mapping(cls, data: Any, base: ReviewWeights | None = None) -> ReviewWeights:
        """Overlay user overrides on top of `base`; negative values clamp to 0, non-finite ones are ignored."""
        base = base or cls()
        vals = base.as_dict()
        if isinstance(data, dict):
            for name in PERSPECTIVES:
                raw = data.get(name)
                if isinstance(raw, (int, float)) and not isinstance(raw, bool) and math.isfinite(raw):
                    vals[name] = max(0.0, float(raw))
        return cls(**vals)
