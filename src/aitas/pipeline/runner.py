# src/aitas/pipeline/runner.py

from __future__ import annotations

"""
Background enrichment pipeline.

Stages, in order, for one task:
1. sanctuary detection
2. category inference (+ status -> completed)
3. subcategory suggestion bookkeeping
4. weighted review (cached on the task)

The task's classification_status is the only record of remaining work:
- "pending" tasks are replayed at startup
- "failed" tasks wait for a manual retry
"""

import asyncio
import logging
from datetime import date
from typing import Any

from ..care.care_mode import CareModeController
from ..core.ports import Reasoner, TaskRepo
from ..core.preferences import load_personality, load_review_weights, load_sanctuary_keywords
from ..scoring.display import is_eligible
from ..scoring.wellness import calculate_score, load_history
from ..storage.models import CategorySource, ClassificationStatus, ReviewResult, Task
from .inference import InferenceAction, InferenceResult, fallback_category_id, infer_category
from .review import review_task
from .sanctuary import is_sanctuary
from .suggestions import check_threshold

logger = logging.getLogger(__name__)


class ClassificationPipeline:
    def __init__(
        self,
        store: TaskRepo,
        reasoner: Reasoner,
        settings: Any,
        care: CareModeController | None = None,
    ) -> None:
        self._store = store
        self._reasoner = reasoner
        self._settings = settings
        self._care = care or CareModeController(store)
        # Strong references: the event loop only keeps weak ones.
        self._inflight: set[asyncio.Task[ReviewResult | None]] = set()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    # ---- entry points ----

    async def run(self, task_id: str, title: str | None = None) -> ReviewResult | None:
        """
        Run every stage for one task.

        Never raises: a failing stage is logged and the task is marked failed.
        Writes done by earlier stages are kept.
        """
        try:
            return await self._run(task_id, title)
        except Exception:
            logger.exception("Pipeline failed task_id=%s", task_id)
            self._mark_failed(task_id)
            return None

    def schedule(self, task_id: str, title: str | None = None) -> asyncio.Task[ReviewResult | None]:
        """Fire-and-forget run; the caller is never blocked or raised at."""
        t = asyncio.create_task(self.run(task_id, title), name=f"pipeline:{task_id}")
        self._inflight.add(t)
        t.add_done_callback(self._on_done)
        return t

    async def replay_pending(self, pause_seconds: float | None = None) -> list[str]:
        """
        Re-run every pending task, oldest first, one at a time.

        Failed tasks are left alone.
        """
        if pause_seconds is None:
            pause_seconds = float(getattr(self._settings, "replay_pause_seconds", 1.0))

        pending = self._store.list_tasks(status=ClassificationStatus.PENDING)
        if not pending:
            return []

        logger.info("Replaying %d pending task(s)", len(pending))
        done: list[str] = []
        for i, task in enumerate(pending):
            if i > 0 and pause_seconds > 0:
                await asyncio.sleep(pause_seconds)
            await self.run(task.id, task.title)
            done.append(task.id)
        return done

    def retry(self, task_id: str) -> asyncio.Task[ReviewResult | None]:
        """Manual retry: a failed task goes back to pending and is scheduled."""
        task = self._store.get_task(task_id)
        if task is None:
            raise ValueError(f"unknown task: {task_id}")
        if task.classification_status != ClassificationStatus.FAILED:
            raise ValueError(f"task {task_id} is not failed (status={task.classification_status.value})")

        self._store.update_task_fields(task_id, classification_status=ClassificationStatus.PENDING)
        logger.info("Retrying task_id=%s", task_id)
        return self.schedule(task_id, task.title)

    async def wait_idle(self) -> None:
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ---- internals ----

    def _on_done(self, t: asyncio.Task[ReviewResult | None]) -> None:
        self._inflight.discard(t)
        if t.cancelled():
            return
        exc = t.exception()
        if exc is not None:
            logger.error("Pipeline task crashed: %r", exc, exc_info=exc)

    def _mark_failed(self, task_id: str) -> None:
        try:
            self._store.update_task_fields(task_id, classification_status=ClassificationStatus.FAILED)
        except Exception:
            logger.exception("Could not mark task failed task_id=%s", task_id)

    async def _run(self, task_id: str, title: str | None) -> ReviewResult | None:
        task = self._store.get_task(task_id)
        if task is None:
            logger.debug("Pipeline: task_id=%s is gone; nothing to do", task_id)
            return None
        title = title or task.title

        # 1) Sanctuary
        keywords = load_sanctuary_keywords(self._store, self._settings)
        if not task.is_sanctuary and is_sanctuary(task, keywords):
            self._store.update_task_fields(task_id, is_sanctuary=True)
            task.is_sanctuary = True
            logger.info("Pipeline: task_id=%s flagged as sanctuary", task_id)

        # 2) Category
        categories = self._store.list_categories()
        if task.category_source == CategorySource.MANUAL and task.category_id:
            self._store.update_task_fields(task_id, classification_status=ClassificationStatus.COMPLETED)
            inference = None
        else:
            if task.is_sanctuary:
                # Sanctuary tasks never reach the model; they land in the default category.
                inference = InferenceResult(
                    category_id=fallback_category_id(categories),
                    action=InferenceAction.FALLBACK,
                )
            else:
                inference = await infer_category(
                    title,
                    categories,
                    self._reasoner,
                    timeout=float(getattr(self._settings, "classify_timeout_seconds", 5.0)),
                )
            source = (
                CategorySource.INFERRED
                if inference.action == InferenceAction.EXISTING
                else CategorySource.FALLBACK
            )
            self._store.update_task_fields(
                task_id,
                category_id=inference.category_id or None,
                category_source=source if inference.category_id else None,
                classification_status=ClassificationStatus.COMPLETED,
            )
            task.category_id = inference.category_id or None
            logger.info(
                "Pipeline: task_id=%s category=%s action=%s",
                task_id,
                inference.category_id or "-",
                inference.action.value,
            )

        # 3) Subcategory suggestion
        if inference is not None and inference.action == InferenceAction.NEW_SUBCATEGORY:
            self._record_suggestion(
                task_id,
                inference.suggested_name or "",
                inference.suggested_parent_id,
                inference.category_id,
            )

        # 4) Review
        if self._store.get_task(task_id) is None:
            logger.debug("Pipeline: task_id=%s deleted mid-flight", task_id)
            return None

        result = await self._review(task, categories)
        self._store.update_task_fields(task_id, review=result)
        logger.info("Pipeline: task_id=%s reviewed overall=%d", task_id, result.overall_score)
        return result

    def _record_suggestion(
        self,
        task_id: str,
        name: str,
        parent_id: str | None,
        category_id: str,
    ) -> None:
        if not name:
            return
        self._store.add_suggestion(name=name, task_id=task_id, parent_id=parent_id, reason="inference")
        verdict = check_threshold(
            self._store,
            name,
            category_id,
            window_days=int(getattr(self._settings, "suggestion_window_days", 7)),
        )
        if not verdict.should_propose:
            return
        if self._store.open_proposal(name=name, parent_id=parent_id, reason=verdict.reason):
            logger.info("Pipeline: proposing subcategory %r (reason=%s)", name, verdict.reason)

    async def _review(self, task: Task, categories: list[Any]) -> ReviewResult:
        personality = load_personality(self._store, self._settings)
        weights = load_review_weights(self._store, personality)
        category = next((c for c in categories if c.id == task.category_id), None)
        goal = self._store.get_goal(task.goal_id) if task.goal_id else None

        if task.is_sanctuary:
            care_active, hint, today_count = False, None, 0
        else:
            today = date.today()
            care_active = self._care.is_active()
            today_count = sum(1 for t in self._store.list_tasks(include_completed=False) if is_eligible(t, today))
            wellness = calculate_score(
                load_history(self._store, today),
                self._care.load_self_report(),
                care_active,
                today=today,
            )
            hint = wellness.guidance.hint

        return await review_task(
            task,
            self._reasoner,
            personality=personality,
            weights=weights,
            category=category,
            goal=goal,
            care_mode_active=care_active,
            today_task_count=today_count,
            guidance_hint=hint,
            timeout=float(getattr(self._settings, "review_timeout_seconds", 10.0)),
        )
