# src/aitas/storage/store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
import uuid
from collections.abc import Iterable, Iterator, Mapping
from datetime import date, datetime, time as dtime, timedelta
from pathlib import Path
from typing import Any

from .models import (
    Category,
    CategoryProposal,
    CategorySource,
    ClassificationStatus,
    Goal,
    PendingSuggestion,
    PortfolioType,
    Priority,
    RecurringPattern,
    RescheduleReason,
    RescheduleRecord,
    ReviewResult,
    ScalingWeight,
    SubTask,
    Task,
    TaskType,
)

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def new_id() -> str:
    return uuid.uuid4().hex


def _date_to_str(d: date | None) -> str | None:
    return d.isoformat() if d is not None else None


def _str_to_date(s: str | None) -> date | None:
    if not s:
        return None
    try:
        return date.fromisoformat(str(s)[:10])
    except ValueError:
        return None


class TaskStore:
    """
    SQLite record store for tasks, categories, settings and pipeline logs.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    - writes are per-record; multi-key settings writes share one transaction
    """

    def __init__(self, db_path: str | Path = "aitas.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    @contextlib.contextmanager
    def _tx(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    completed INTEGER NOT NULL DEFAULT 0,
                    completed_at REAL,
                    due_date TEXT,
                    original_due_date TEXT,
                    priority TEXT NOT NULL DEFAULT 'medium',
                    is_recurring INTEGER NOT NULL DEFAULT 0,
                    recurring_pattern TEXT,
                    task_type TEXT NOT NULL DEFAULT 'normal',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("reschedule_count", "INTEGER NOT NULL DEFAULT 0")
            add_col("category_id", "TEXT")
            add_col("category_source", "TEXT")
            add_col("portfolio_type", "TEXT NOT NULL DEFAULT 'maintenance'")
            add_col("is_sanctuary", "INTEGER NOT NULL DEFAULT 0")
            add_col("classification_status", "TEXT NOT NULL DEFAULT 'pending'")
            add_col("review", "TEXT")
            add_col("goal_id", "TEXT")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS sub_tasks (
                    id TEXT PRIMARY KEY NOT NULL,
                    task_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY NOT NULL,
                    name TEXT NOT NULL,
                    icon TEXT NOT NULL DEFAULT 'folder-outline',
                    color TEXT NOT NULL DEFAULT '#9CA3AF',
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    is_default INTEGER NOT NULL DEFAULT 0,
                    scaling_weight TEXT NOT NULL DEFAULT 'normal',
                    parent_id TEXT
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS goals (
                    id TEXT PRIMARY KEY NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    target_date TEXT
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY NOT NULL,
                    value TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS pending_suggestions (
                    id TEXT PRIMARY KEY NOT NULL,
                    name TEXT NOT NULL,
                    task_id TEXT NOT NULL,
                    parent_id TEXT,
                    reason TEXT NOT NULL DEFAULT '',
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS category_proposals (
                    id TEXT PRIMARY KEY NOT NULL,
                    name TEXT NOT NULL,
                    parent_id TEXT,
                    reason TEXT NOT NULL,
                    created_at REAL NOT NULL,
                    resolved INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS reschedule_history (
                    id TEXT PRIMARY KEY NOT NULL,
                    reason TEXT NOT NULL,
                    task_ids TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(classification_status, created_at)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_due ON tasks(completed, due_date)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_suggestions_name ON pending_suggestions(name, created_at)"
            )

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _review_to_str(review: ReviewResult | None) -> str | None:
        if review is None:
            return None
        return json.dumps(review.to_dict(), ensure_ascii=False)

    @staticmethod
    def _str_to_review(s: str | None) -> ReviewResult | None:
        if not s:
            return None
        try:
            val = json.loads(s)
            return ReviewResult.from_dict(val) if isinstance(val, dict) else None
        except Exception:
            logger.warning("Dropping unreadable cached review.", exc_info=True)
            return None

    def _row_to_task(self, row: sqlite3.Row, subtasks: list[SubTask] | None = None) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            description=row["description"],
            completed=bool(row["completed"]),
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
            due_date=_str_to_date(row["due_date"]),
            original_due_date=_str_to_date(row["original_due_date"]),
            priority=Priority.from_db(row["priority"]),
            is_recurring=bool(row["is_recurring"]),
            recurring_pattern=RecurringPattern.from_db(row["recurring_pattern"]),
            task_type=TaskType.from_db(row["task_type"]),
            category_id=row["category_id"],
            category_source=CategorySource.from_db(row["category_source"]),
            portfolio_type=PortfolioType.from_db(row["portfolio_type"]),
            is_sanctuary=bool(row["is_sanctuary"]),
            reschedule_count=int(row["reschedule_count"] or 0),
            classification_status=ClassificationStatus.from_db(row["classification_status"]),
            review=self._str_to_review(row["review"]),
            goal_id=row["goal_id"],
            subtasks=subtasks or [],
        )

    @staticmethod
    def _row_to_subtask(row: sqlite3.Row) -> SubTask:
        return SubTask(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            title=str(row["title"]),
            completed=bool(row["completed"]),
        )

    @staticmethod
    def _row_to_category(row: sqlite3.Row) -> Category:
        return Category(
            id=str(row["id"]),
            name=str(row["name"]),
            icon=str(row["icon"]),
            color=str(row["color"]),
            sort_order=int(row["sort_order"] or 0),
            is_default=bool(row["is_default"]),
            scaling_weight=ScalingWeight.from_db(row["scaling_weight"]),
            parent_id=row["parent_id"],
        )

    # ---- tasks ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def add_task(
        self,
        *,
        title: str,
        description: str | None = None,
        due_date: date | None = None,
        priority: Priority = Priority.MEDIUM,
        is_recurring: bool = False,
        recurring_pattern: RecurringPattern | None = None,
        task_type: TaskType = TaskType.NORMAL,
        category_id: str | None = None,
        portfolio_type: PortfolioType = PortfolioType.MAINTENANCE,
        is_sanctuary: bool = False,
        goal_id: str | None = None,
        subtask_titles: Iterable[str] = (),
        status: ClassificationStatus = ClassificationStatus.PENDING,
        created_at: float | None = None,
    ) -> str:
        if not title or not title.strip():
            raise ValueError("title is required")

        now = time.time() if created_at is None else float(created_at)
        task_id = new_id()

        with self._tx() as conn:
            conn.execute(
                """
                INSERT INTO tasks(
                    id, title, description, completed, completed_at,
                    due_date, original_due_date, priority, is_recurring, recurring_pattern,
                    task_type, created_at, updated_at, reschedule_count,
                    category_id, category_source, portfolio_type, is_sanctuary,
                    classification_status, review, goal_id
                )
                VALUES (?, ?, ?, 0, NULL, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?, ?, NULL, ?)
                """,
                (
                    task_id,
                    title.strip(),
                    description,
                    _date_to_str(due_date),
                    _date_to_str(due_date),
                    Priority(priority).value,
                    int(bool(is_recurring)),
                    recurring_pattern.value if recurring_pattern else None,
                    TaskType(task_type).value,
                    now,
                    now,
                    category_id,
                    CategorySource.MANUAL.value if category_id else None,
                    PortfolioType(portfolio_type).value,
                    int(bool(is_sanctuary)),
                    ClassificationStatus(status).value,
                    goal_id,
                ),
            )
            for sub_title in subtask_titles:
                if sub_title and sub_title.strip():
                    conn.execute(
                        "INSERT INTO sub_tasks(id, task_id, title, completed) VALUES (?, ?, ?, 0)",
                        (new_id(), task_id, sub_title.strip()),
                    )

        logger.debug("Task added id=%s priority=%s due=%s", task_id, priority, due_date)
        return task_id

    def _subtasks_by_task(self, conn: sqlite3.Connection, task_ids: list[str]) -> dict[str, list[SubTask]]:
        if not task_ids:
            return {}
        placeholders = ",".join("?" for _ in task_ids)
        rows = conn.execute(
            f"SELECT * FROM sub_tasks WHERE task_id IN ({placeholders}) ORDER BY rowid ASC",
            task_ids,
        ).fetchall()
        out: dict[str, list[SubTask]] = {}
        for r in rows:
            out.setdefault(str(r["task_id"]), []).append(self._row_to_subtask(r))
        return out

    def get_task(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
            if row is None:
                return None
            subs = self._subtasks_by_task(conn, [task_id])
            return self._row_to_task(row, subs.get(task_id))
        finally:
            conn.close()

    def list_tasks(
        self,
        *,
        status: ClassificationStatus | None = None,
        include_completed: bool = True,
    ) -> list[Task]:
        """All tasks in insertion order (oldest first)."""
        where: list[str] = []
        params: list[Any] = []
        if status is not None:
            where.append("classification_status = ?")
            params.append(ClassificationStatus(status).value)
        if not include_completed:
            where.append("completed = 0")
        sql = "SELECT * FROM tasks"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY created_at ASC, rowid ASC"

        conn = self._get_conn()
        try:
            rows = conn.execute(sql, params).fetchall()
            subs = self._subtasks_by_task(conn, [str(r["id"]) for r in rows])
            return [self._row_to_task(r, subs.get(str(r["id"]))) for r in rows]
        finally:
            conn.close()

    def find_task_by_prefix(self, prefix: str) -> Task | None:
        """Resolve a short id prefix (console convenience). Ambiguous prefixes return None."""
        prefix = (prefix or "").strip().lower()
        if not prefix:
            return None
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT id FROM tasks WHERE id LIKE ? LIMIT 2", (prefix + "%",)
            ).fetchall()
        finally:
            conn.close()
        if len(rows) != 1:
            return None
        return self.get_task(str(rows[0]["id"]))

    def update_task_fields(
        self,
        task_id: str,
        *,
        title: str | None = None,
        description: Any = _UNSET,
        due_date: Any = _UNSET,
        priority: Priority | None = None,
        category_id: Any = _UNSET,
        category_source: Any = _UNSET,
        portfolio_type: PortfolioType | None = None,
        is_sanctuary: bool | None = None,
        classification_status: ClassificationStatus | None = None,
        review: Any = _UNSET,
        goal_id: Any = _UNSET,
    ) -> None:
        """
        Field-level update: only the named columns are written (last-write-wins per field).
        Nullable fields use a sentinel so None can be written explicitly.
        """
        fields: list[str] = []
        params: list[Any] = []

        if title is not None:
            if not title.strip():
                raise ValueError("title must not be empty")
            fields.append("title = ?")
            params.append(title.strip())
        if description is not _UNSET:
            fields.append("description = ?")
            params.append(description)
        if due_date is not _UNSET:
            fields.append("due_date = ?")
            params.append(_date_to_str(due_date))
        if priority is not None:
            fields.append("priority = ?")
            params.append(Priority(priority).value)
        if category_id is not _UNSET:
            fields.append("category_id = ?")
            params.append(category_id)
        if category_source is not _UNSET:
            fields.append("category_source = ?")
            params.append(CategorySource(category_source).value if category_source else None)
        if portfolio_type is not None:
            fields.append("portfolio_type = ?")
            params.append(PortfolioType(portfolio_type).value)
        if is_sanctuary is not None:
            fields.append("is_sanctuary = ?")
            params.append(int(bool(is_sanctuary)))
        if classification_status is not None:
            fields.append("classification_status = ?")
            params.append(ClassificationStatus(classification_status).value)
        if review is not _UNSET:
            fields.append("review = ?")
            params.append(self._review_to_str(review))
        if goal_id is not _UNSET:
            fields.append("goal_id = ?")
            params.append(goal_id)

        if not fields:
            return

        fields.append("updated_at = ?")
        params.append(time.time())
        params.append(task_id)

        with self._tx() as conn:
            conn.execute(f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?", params)

    def set_task_completed(self, task_id: str, completed: bool, *, now_ts: float | None = None) -> None:
        """completed_at is set if and only if completed is true."""
        now = time.time() if now_ts is None else float(now_ts)
        with self._tx() as conn:
            conn.execute(
                "UPDATE tasks SET completed = ?, completed_at = ?, updated_at = ? WHERE id = ?",
                (int(bool(completed)), now if completed else None, now, task_id),
            )

    def delete_task(self, task_id: str) -> bool:
        """Delete a task; its subtasks go with it (ON DELETE CASCADE)."""
        with self._tx() as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            return cur.rowcount == 1

    def bulk_reschedule(self, task_ids: Iterable[str], new_due: date) -> int:
        """Move tasks to `new_due`; reschedule_count only ever increases."""
        ids = list(task_ids)
        if not ids:
            return 0
        now = time.time()
        with self._tx() as conn:
            for tid in ids:
                conn.execute(
                    """
                    UPDATE tasks
                    SET due_date = ?, reschedule_count = reschedule_count + 1, updated_at = ?
                    WHERE id = ?
                    """,
                    (_date_to_str(new_due), now, tid),
                )
        return len(ids)

    # ---- subtasks ----

    def add_subtask(self, task_id: str, title: str) -> str:
        if not title or not title.strip():
            raise ValueError("title is required")
        sub_id = new_id()
        with self._tx() as conn:
            conn.execute(
                "INSERT INTO sub_tasks(id, task_id, title, completed) VALUES (?, ?, ?, 0)",
                (sub_id, task_id, title.strip()),
            )
        return sub_id

    def set_subtask_completed(self, subtask_id: str, completed: bool) -> None:
        with self._tx() as conn:
            conn.execute(
                "UPDATE sub_tasks SET completed = ? WHERE id = ?", (int(bool(completed)), subtask_id)
            )

    # ---- categories ----

    def add_category(
        self,
        *,
        name: str,
        scaling_weight: ScalingWeight = ScalingWeight.NORMAL,
        parent_id: str | None = None,
        is_default: bool = False,
        icon: str = "folder-outline",
        color: str = "#9CA3AF",
        sort_order: int | None = None,
    ) -> str:
        if not name or not name.strip():
            raise ValueError("name is required")
        cat_id = new_id()
        with self._tx() as conn:
            if sort_order is None:
                (mx,) = conn.execute("SELECT COALESCE(MAX(sort_order), -1) FROM categories").fetchone()
                sort_order = int(mx) + 1
            if is_default:
                conn.execute("UPDATE categories SET is_default = 0")
            conn.execute(
                """
                INSERT INTO categories(id, name, icon, color, sort_order, is_default, scaling_weight, parent_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    cat_id,
                    name.strip(),
                    icon,
                    color,
                    int(sort_order),
                    int(bool(is_default)),
                    ScalingWeight(scaling_weight).value,
                    parent_id,
                ),
            )
        return cat_id

    def list_categories(self) -> list[Category]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM categories ORDER BY sort_order ASC, rowid ASC").fetchall()
            return [self._row_to_category(r) for r in rows]
        finally:
            conn.close()

    def get_category(self, category_id: str) -> Category | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
            return self._row_to_category(row) if row else None
        finally:
            conn.close()

    def set_default_category(self, category_id: str) -> None:
        """Exactly one default: clear the flag everywhere, then set it, in one transaction."""
        with self._tx() as conn:
            row = conn.execute("SELECT id FROM categories WHERE id = ?", (category_id,)).fetchone()
            if row is None:
                raise ValueError(f"unknown category: {category_id}")
            conn.execute("UPDATE categories SET is_default = 0")
            conn.execute("UPDATE categories SET is_default = 1 WHERE id = ?", (category_id,))

    def delete_category(self, category_id: str) -> None:
        cat = self.get_category(category_id)
        if cat is None:
            return
        if cat.is_default:
            raise ValueError("the default category cannot be deleted")
        with self._tx() as conn:
            conn.execute(
                "UPDATE tasks SET category_id = NULL, category_source = NULL WHERE category_id = ?",
                (category_id,),
            )
            conn.execute("UPDATE categories SET parent_id = NULL WHERE parent_id = ?", (category_id,))
            conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))

    # ---- goals ----

    def add_goal(self, *, title: str, description: str | None = None, target_date: date | None = None) -> str:
        if not title or not title.strip():
            raise ValueError("title is required")
        goal_id = new_id()
        with self._tx() as conn:
            conn.execute(
                "INSERT INTO goals(id, title, description, target_date) VALUES (?, ?, ?, ?)",
                (goal_id, title.strip(), description, _date_to_str(target_date)),
            )
        return goal_id

    def get_goal(self, goal_id: str) -> Goal | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM goals WHERE id = ?", (goal_id,)).fetchone()
            if row is None:
                return None
            return Goal(
                id=str(row["id"]),
                title=str(row["title"]),
                description=row["description"],
                target_date=_str_to_date(row["target_date"]),
            )
        finally:
            conn.close()

    def list_goals(self) -> list[Goal]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM goals ORDER BY rowid ASC").fetchall()
            return [
                Goal(
                    id=str(r["id"]),
                    title=str(r["title"]),
                    description=r["description"],
                    target_date=_str_to_date(r["target_date"]),
                )
                for r in rows
            ]
        finally:
            conn.close()

    # ---- settings ----

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
            return str(row["value"]) if row else default
        finally:
            conn.close()

    def set_setting(self, key: str, value: str) -> None:
        self.set_settings({key: value})

    def set_settings(self, values: Mapping[str, str]) -> None:
        """Write several keys atomically (all or nothing)."""
        if not values:
            return
        with self._tx() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO settings(key, value) VALUES (?, ?)",
                [(k, str(v)) for k, v in values.items()],
            )

    def get_json_setting(self, key: str) -> Any:
        raw = self.get_setting(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Setting %s is not valid JSON; ignoring.", key)
            return None

    # ---- suggestion log ----

    def add_suggestion(
        self,
        *,
        name: str,
        task_id: str,
        parent_id: str | None,
        reason: str = "",
        created_at: float | None = None,
    ) -> str:
        sug_id = new_id()
        ts = time.time() if created_at is None else float(created_at)
        with self._tx() as conn:
            conn.execute(
                """
                INSERT INTO pending_suggestions(id, name, task_id, parent_id, reason, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (sug_id, name.strip(), task_id, parent_id, reason, ts),
            )
        return sug_id

    def list_suggestions(self) -> list[PendingSuggestion]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM pending_suggestions ORDER BY created_at ASC").fetchall()
            return [
                PendingSuggestion(
                    id=str(r["id"]),
                    name=str(r["name"]),
                    task_id=str(r["task_id"]),
                    parent_id=r["parent_id"],
                    reason=str(r["reason"] or ""),
                    created_at=float(r["created_at"]),
                )
                for r in rows
            ]
        finally:
            conn.close()

    def count_recent_suggestions_by_name(self, name: str, *, days: int, now_ts: float | None = None) -> int:
        now = time.time() if now_ts is None else float(now_ts)
        since = now - days * 86400.0
        conn = self._get_conn()
        try:
            (n,) = conn.execute(
                "SELECT COUNT(*) FROM pending_suggestions WHERE name = ? AND created_at >= ?",
                (name.strip(), since),
            ).fetchone()
            return int(n)
        finally:
            conn.close()

    def count_fallback_tasks_in_category(self, category_id: str) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute(
                "SELECT COUNT(*) FROM tasks WHERE category_id = ? AND category_source = ?",
                (category_id, CategorySource.FALLBACK.value),
            ).fetchone()
            return int(n)
        finally:
            conn.close()

    # ---- category proposals ----

    def open_proposal(self, *, name: str, parent_id: str | None, reason: str) -> bool:
        """Raise the pending-review flag for `name`. Returns False if one is already open."""
        with self._tx() as conn:
            row = conn.execute(
                "SELECT id FROM category_proposals WHERE name = ? AND resolved = 0", (name.strip(),)
            ).fetchone()
            if row is not None:
                return False
            conn.execute(
                """
                INSERT INTO category_proposals(id, name, parent_id, reason, created_at, resolved)
                VALUES (?, ?, ?, ?, ?, 0)
                """,
                (new_id(), name.strip(), parent_id, reason, time.time()),
            )
        return True

    def list_open_proposals(self) -> list[CategoryProposal]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM category_proposals WHERE resolved = 0 ORDER BY created_at ASC"
            ).fetchall()
            return [
                CategoryProposal(
                    id=str(r["id"]),
                    name=str(r["name"]),
                    parent_id=r["parent_id"],
                    reason=str(r["reason"]),
                    created_at=float(r["created_at"]),
                    resolved=bool(r["resolved"]),
                )
                for r in rows
            ]
        finally:
            conn.close()

    def resolve_proposal(self, proposal_id: str) -> None:
        with self._tx() as conn:
            conn.execute("UPDATE category_proposals SET resolved = 1 WHERE id = ?", (proposal_id,))

    # ---- reschedule history ----

    def add_reschedule_record(self, reason: RescheduleReason, task_ids: list[str]) -> str:
        rec_id = new_id()
        with self._tx() as conn:
            conn.execute(
                "INSERT INTO reschedule_history(id, reason, task_ids, created_at) VALUES (?, ?, ?, ?)",
                (rec_id, RescheduleReason(reason).value, json.dumps(list(task_ids)), time.time()),
            )
        return rec_id

    def list_reschedule_history(self) -> list[RescheduleRecord]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM reschedule_history ORDER BY created_at ASC").fetchall()
        finally:
            conn.close()
        out: list[RescheduleRecord] = []
        for r in rows:
            try:
                ids = json.loads(r["task_ids"])
            except ValueError:
                ids = []
            out.append(
                RescheduleRecord(
                    id=str(r["id"]),
                    reason=RescheduleReason(r["reason"]),
                    task_ids=[str(i) for i in ids] if isinstance(ids, list) else [],
                    created_at=float(r["created_at"]),
                )
            )
        return out

    # ---- completion history (wellness input) ----

    def completion_rows(self, *, days: int = 7, today: date | None = None) -> list[tuple[str, str, int, int]]:
        """
        (day, task_type, total, completed) for the trailing window.

        A task belongs to its due day, or to its creation day when undated.
        Days after `today` are excluded.
        """
        today = today or date.today()
        since = today - timedelta(days=max(1, days) - 1)
        since_ts = datetime.combine(since, dtime.min).timestamp()
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT
                    COALESCE(due_date, DATE(created_at, 'unixepoch', 'localtime')) AS day,
                    task_type,
                    COUNT(*) AS total,
                    SUM(CASE WHEN completed = 1 THEN 1 ELSE 0 END) AS done
                FROM tasks
                WHERE (due_date >= ? OR (due_date IS NULL AND created_at >= ?))
                GROUP BY day, task_type
                HAVING day <= ?
                ORDER BY day ASC
                """,
                (since.isoformat(), since_ts, today.isoformat()),
            ).fetchall()
            return [(str(r["day"]), str(r["task_type"]), int(r["total"]), int(r["done"] or 0)) for r in rows]
        finally:
            conn.close()
