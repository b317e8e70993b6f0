# src/aitas/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage and reasoning backends swappable and makes testing easier.
"""

from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any, Protocol


class Reasoner(Protocol):
    """
    Text-in/text-out reasoning capability.

    `timeout` is the caller's budget in seconds. Implementations raise on
    failure; callers decide what a safe default looks like.
    """

    async def complete(self, system_prompt: str, prompt: str, timeout: float) -> str: ...


class TaskRepo(Protocol):
    # Tasks
    def get_task(self, task_id: str) -> Any | None: ...
    def list_tasks(self, *, status: Any | None = None, include_completed: bool = True) -> list[Any]: ...
    def update_task_fields(self, task_id: str, **fields: Any) -> None: ...
    def bulk_reschedule(self, task_ids: Iterable[str], new_due: date) -> int: ...

    # Categories / goals
    def list_categories(self) -> list[Any]: ...
    def get_goal(self, goal_id: str) -> Any | None: ...

    # Settings
    def get_setting(self, key: str, default: str | None = None) -> str | None: ...
    def set_settings(self, values: Mapping[str, str]) -> None: ...
    def get_json_setting(self, key: str) -> Any: ...

    # Logs
    def add_suggestion(
            self,
            *,
            name: str,
            task_id: str,
            parent_id: str | None,
            reason: str = "",
            created_at: float | None = None,
    ) -> str: ...
    def count_recent_suggestions_by_name(self, name: str, *, days: int, now_ts: float | None = None) -> int: ...
    def count_fallback_tasks_in_category(self, category_id: str) -> int: ...
    def open_proposal(self, *, name: str, parent_id: str | None, reason: str) -> bool: ...
    def add_reschedule_record(self, reason: Any, task_ids: list[str]) -> str: ...

    # Wellness
    def completion_rows(self, *, days: int = 7, today: date | None = None) -> list[tuple[str, str, int, int]]: ...
