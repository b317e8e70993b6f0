# src/aitas/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
import math
from collections.abc import Callable
from datetime import date, timedelta
from typing import cast

from ..core.personality import PROFILES, Personality, get_profile
from ..core.preferences import (
    load_personality,
    load_review_weights,
    load_sanctuary_keywords,
    reset_review_weights,
    save_personality,
    save_review_weights,
    save_sanctuary_keywords,
)
from ..core.state import AppState
from ..scoring.display import build_focus_view, display_score
from ..scoring.wellness import calculate_score, load_history
from ..storage.models import (
    PERSPECTIVES,
    Category,
    ClassificationStatus,
    PortfolioType,
    Priority,
    RescheduleReason,
    ReviewWeights,
    ScalingWeight,
    SelfReportLevel,
    Task,
    TaskType,
)

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _short(task_id: str) -> str:
    return task_id[:8]


def _resolve_task(state: AppState, token: str | None) -> Task | None:
    if not token:
        return None
    return state.store.get_task(token) or state.store.find_task_by_prefix(token)


def _resolve_category(categories: list[Category], token: str) -> Category | None:
    """Exact name (case-insensitive) first, then exact id, then a unique id prefix."""
    token = token.strip()
    if not token:
        return None
    low = token.lower()
    for c in categories:
        if c.name.lower() == low:
            return c
    for c in categories:
        if c.id == low:
            return c
    matches = [c for c in categories if c.id.startswith(low)]
    return matches[0] if len(matches) == 1 else None


def _parse_due(raw: str, today: date) -> date | None:
    raw = raw.lower()
    if raw == "today":
        return today
    if raw == "tomorrow":
        return today + timedelta(days=1)
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def add_task_from_text(state: AppState, text: str) -> Task:
    """
    Create a task from a console line and hand it to the background pipeline.

    Inline markers (all optional):
      !high / !medium / !low          priority
      @today / @tomorrow / @YYYY-MM-DD due date
      #<category>                      manual category (skips inference)
      +drive / +maintenance / +recharge portfolio
      ~routine / ~normal / ~urgent     task type
    """
    today = date.today()
    title_parts: list[str] = []
    priority = Priority.MEDIUM
    due: date | None = None
    category_id: str | None = None
    portfolio = PortfolioType.MAINTENANCE
    task_type = TaskType.NORMAL
    categories: list[Category] | None = None

    for word in text.split():
        marker, rest = word[:1], word[1:]
        if marker == "!" and rest.lower() in {p.value for p in Priority}:
            priority = Priority(rest.lower())
        elif marker == "@" and rest and _parse_due(rest, today) is not None:
            due = _parse_due(rest, today)
        elif marker == "#" and rest:
            categories = categories if categories is not None else state.store.list_categories()
            cat = _resolve_category(categories, rest)
            if cat is None:
                raise ValueError(f"unknown category: {rest}")
            category_id = cat.id
        elif marker == "+" and rest.lower() in {p.value for p in PortfolioType}:
            portfolio = PortfolioType(rest.lower())
        elif marker == "~" and rest.lower() in {t.value for t in TaskType}:
            task_type = TaskType(rest.lower())
        else:
            title_parts.append(word)

    title = " ".join(title_parts).strip()
    if not title:
        raise ValueError("task title is empty")

    task_id = state.store.add_task(
        title=title,
        due_date=due,
        priority=priority,
        category_id=category_id,
        portfolio_type=portfolio,
        task_type=task_type,
    )
    task = state.store.get_task(task_id)
    if task is None:
        raise ValueError("task vanished right after insert")
    logger.debug("Console task added id=%s", task_id)
    state.pipeline.schedule(task_id, title)
    return task


def _fmt_task(task: Task, score: int | None = None) -> str:
    mark = "x" if task.completed else " "
    bits = [f"[{mark}] {_short(task.id)} {task.title}"]
    if score is not None:
        bits.append(f"score={score}")
    bits.append(f"prio={task.priority.value}")
    if task.due_date:
        bits.append(f"due={task.due_date.isoformat()}")
    if task.is_sanctuary:
        bits.append("sanctuary")
    if task.classification_status != ClassificationStatus.COMPLETED:
        bits.append(f"({task.classification_status.value})")
    return "  ".join(bits)


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    names = getattr(state.reasoner, "names", None) or [getattr(state.reasoner, "name", "?")]
    care = state.care.load()
    pending = len(state.store.list_tasks(status=ClassificationStatus.PENDING))
    failed = len(state.store.list_tasks(status=ClassificationStatus.FAILED))
    care_line = (
        f"ON ({care.reason.value if care.reason else '-'}, until {care.expires_at:%Y-%m-%d %H:%M} UTC)"
        if care.active and care.expires_at
        else "OFF"
    )
    return (
        "Status:\n"
        f"  AI mode: {getattr(settings, 'ai_mode', '?')} (providers: {', '.join(names)})\n"
        f"  Personality: {load_personality(state.store, settings).value}\n"
        f"  Care mode: {care_line}\n"
        f"  Tasks: {state.store.count_tasks()} (pending={pending}, failed={failed}, "
        f"running={state.pipeline.inflight})"
    )


def cmd_add(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /add <title> [!high|!low] [@today|@tomorrow|@YYYY-MM-DD] [#category] [+recharge] [~routine]"
    try:
        task = add_task_from_text(state, " ".join(args))
    except ValueError as e:
        return f"Cannot add task: {e}"
    return f"Added {_short(task.id)}: {task.title} (enrichment running in background)"


def cmd_list(state: AppState, args: list[str]) -> str:
    include_completed = bool(args and args[0].lower() == "all")
    tasks = state.store.list_tasks(include_completed=include_completed)
    if not tasks:
        return "No tasks."
    by_id = {c.id: c for c in state.store.list_categories()}
    lines = ["Tasks:"]
    for t in tasks:
        cat = by_id.get(t.category_id) if t.category_id else None
        lines.append("  " + _fmt_task(t, display_score(t, cat)))
    return "\n".join(lines)


def cmd_focus(state: AppState, args: list[str]) -> str:
    view = build_focus_view(
        state.store.list_tasks(include_completed=False),
        state.store.list_categories(),
        skipped=list(state.skips),
        care_mode_active=state.care.is_active(),
    )
    if view.focus is None:
        return "Nothing to focus on right now."
    lines = ["Focus:", "  " + _fmt_task(view.focus.task, view.focus.score)]
    if view.preview:
        lines.append("Next:")
        lines.extend("  " + _fmt_task(s.task, s.score) for s in view.preview)
    return "\n".join(lines)


def cmd_skip(state: AppState, args: list[str]) -> str:
    """
    /skip         -> skip the current focus task
    /skip <id>    -> skip a specific task
    /skip clear   -> forget all skips
    """
    if args and args[0].lower() == "clear":
        state.skips.clear()
        return "Skips cleared."

    if args:
        task = _resolve_task(state, args[0])
        if task is None:
            return f"No task matches {args[0]!r}."
        task_id = task.id
    else:
        view = build_focus_view(
            state.store.list_tasks(include_completed=False),
            state.store.list_categories(),
            skipped=list(state.skips),
            care_mode_active=state.care.is_active(),
        )
        if view.focus is None:
            return "Nothing to skip."
        task_id = view.focus.task.id

    state.skips.skip(task_id)
    return f"Skipped {_short(task_id)}."


def cmd_done(state: AppState, args: list[str]) -> str:
    task = _resolve_task(state, args[0] if args else None)
    if task is None:
        return "Usage: /done <task-id>"
    state.store.set_task_completed(task.id, True)
    return f"Done: {task.title}"


def cmd_delete(state: AppState, args: list[str]) -> str:
    task = _resolve_task(state, args[0] if args else None)
    if task is None:
        return "Usage: /delete <task-id>"
    state.store.delete_task(task.id)
    return f"Deleted: {task.title}"


def cmd_review(state: AppState, args: list[str]) -> str:
    task = _resolve_task(state, args[0] if args else None)
    if task is None:
        return "Usage: /review <task-id>"
    review = task.review
    if review is None:
        return f"No review yet for {_short(task.id)} (status={task.classification_status.value})."

    lines = [f"Review of {task.title!r}: overall {review.overall_score}"]
    if review.is_sanctuary and review.sanctuary_message:
        lines.append(f"  {review.sanctuary_message}")
    for name, p in review.perspectives().items():
        line = f"  {name}: {p.score} - {p.summary}"
        if p.suggestion:
            line += f" (tip: {p.suggestion})"
        lines.append(line)
    subs = review.decomposition.suggested_subtasks or []
    if subs:
        lines.append("  Suggested subtasks (accept with /subtasks <id> accept):")
        lines.extend(f"    - {s}" for s in subs)
    return "\n".join(lines)


def cmd_subtasks(state: AppState, args: list[str]) -> str:
    """
    /subtasks <id>               -> list subtasks
    /subtasks <id> accept        -> add the review's suggested subtasks
    /subtasks <id> add <title>   -> add one subtask
    /subtasks <id> done <n>      -> complete subtask number n (1-based)
    """
    task = _resolve_task(state, args[0] if args else None)
    if task is None:
        return "Usage: /subtasks <task-id> [accept | add <title> | done <n>]"

    sub = args[1].lower() if len(args) > 1 else ""

    if sub == "accept":
        suggested = (task.review.decomposition.suggested_subtasks or []) if task.review else []
        existing = {s.title for s in task.subtasks}
        added = 0
        for title in suggested:
            if title.strip() and title.strip() not in existing:
                state.store.add_subtask(task.id, title)
                added += 1
        return f"Added {added} subtask(s)." if added else "No new suggested subtasks."

    if sub == "add":
        title = " ".join(args[2:]).strip()
        if not title:
            return "Usage: /subtasks <task-id> add <title>"
        state.store.add_subtask(task.id, title)
        return "Subtask added."

    if sub == "done":
        try:
            idx = int(args[2]) - 1
            if idx < 0:
                raise IndexError(idx)
            target = task.subtasks[idx]
        except (IndexError, ValueError):
            return "Usage: /subtasks <task-id> done <n>"
        state.store.set_subtask_completed(target.id, True)
        return f"Subtask done: {target.title}"

    if not task.subtasks:
        return "No subtasks."
    lines = [f"Subtasks of {task.title!r}:"]
    for i, s in enumerate(task.subtasks, start=1):
        lines.append(f"  {i}. [{'x' if s.completed else ' '}] {s.title}")
    return "\n".join(lines)


def cmd_reschedule(state: AppState, args: list[str]) -> str:
    reason = RescheduleReason.from_db(args[0].lower()) if args else None
    if reason is None:
        return "Usage: /reschedule schedule_change | rest | struggling"
    outcome = state.care.bulk_reschedule(reason)
    msg = f"Moved {len(outcome.task_ids)} task(s) to {outcome.new_due.isoformat()}."
    if outcome.care.active and outcome.care.expires_at:
        msg += f" Care mode is on until {outcome.care.expires_at:%Y-%m-%d %H:%M} UTC."
    return msg


def cmd_report(state: AppState, args: list[str]) -> str:
    level = SelfReportLevel.from_db(args[0].lower()) if args else None
    if level is None:
        return "Usage: /report good | normal | tough"
    was_active = state.care.is_active()
    care = state.care.record_self_report(level)
    if was_active and not care.active:
        return f"Noted: {level.value}. Glad you feel better, care mode is off."
    return f"Noted: {level.value}."


def cmd_score(state: AppState, args: list[str]) -> str:
    care_active = state.care.is_active()
    result = calculate_score(
        load_history(state.store),
        state.care.load_self_report(),
        care_active,
    )
    b = result.breakdown
    return (
        f"Wellness: {result.score} ({result.guidance.text})\n"
        f"  quantitative={b.quantitative} trend={b.trend} self={b.self_report} "
        f"streak={b.streak_bonus} days={b.data_available_days}"
        + ("\n  Care mode caps the score at 50." if care_active else "")
    )


def cmd_care(state: AppState, args: list[str]) -> str:
    """
    /care        -> show care mode
    /care exit   -> leave care mode now
    """
    if args and args[0].lower() in ("exit", "off"):
        state.care.exit()
        return "Care mode is off."
    care = state.care.load()
    if not care.active or care.expires_at is None:
        return "Care mode is off."
    reason = care.reason.value if care.reason else "-"
    return f"Care mode is on ({reason}) until {care.expires_at:%Y-%m-%d %H:%M} UTC."


def cmd_categories(state: AppState, args: list[str]) -> str:
    """
    /categories                               -> list
    /categories add <name> [strict|normal|relaxed]
    /categories default <name-or-id>
    /categories delete <name-or-id>
    """
    categories = state.store.list_categories()
    sub = args[0].lower() if args else ""

    if sub == "add":
        if len(args) < 2:
            return "Usage: /categories add <name> [strict|normal|relaxed]"
        weight = ScalingWeight.NORMAL
        words = args[1:]
        if len(words) > 1 and words[-1].lower() in {w.value for w in ScalingWeight}:
            weight = ScalingWeight(words.pop().lower())
        name = " ".join(words)
        state.store.add_category(name=name, scaling_weight=weight)
        return f"Category added: {name} ({weight.value})"

    if sub in ("default", "delete"):
        cat = _resolve_category(categories, " ".join(args[1:])) if len(args) > 1 else None
        if cat is None:
            return f"Usage: /categories {sub} <name-or-id>"
        if sub == "default":
            state.store.set_default_category(cat.id)
            return f"Default category: {cat.name}"
        try:
            state.store.delete_category(cat.id)
        except ValueError as e:
            return f"Cannot delete {cat.name}: {e}"
        return f"Category deleted: {cat.name}"

    if not categories:
        return "No categories."
    by_id = {c.id: c for c in categories}
    lines = ["Categories:"]
    for c in categories:
        parent = f" < {by_id[c.parent_id].name}" if c.parent_id in by_id else ""
        default = " [default]" if c.is_default else ""
        lines.append(f"  {_short(c.id)} {c.name}{parent} ({c.scaling_weight.value}){default}")
    return "\n".join(lines)


def cmd_proposals(state: AppState, args: list[str]) -> str:
    """
    /proposals                 -> list open subcategory proposals
    /proposals accept <n>      -> create the subcategory
    /proposals dismiss <n>     -> drop it
    """
    proposals = state.store.list_open_proposals()
    sub = args[0].lower() if args else ""

    if sub in ("accept", "dismiss"):
        try:
            proposal = proposals[int(args[1]) - 1]
        except (IndexError, ValueError):
            return f"Usage: /proposals {sub} <n>"
        if sub == "accept":
            state.store.add_category(name=proposal.name, parent_id=proposal.parent_id)
        state.store.resolve_proposal(proposal.id)
        return f"Proposal {sub}ed: {proposal.name}"

    if not proposals:
        return "No open proposals."
    by_id = {c.id: c for c in state.store.list_categories()}
    lines = ["Subcategory proposals:"]
    for i, p in enumerate(proposals, start=1):
        parent = by_id[p.parent_id].name if p.parent_id in by_id else "-"
        lines.append(f"  {i}. {p.name} under {parent} (reason: {p.reason})")
    return "\n".join(lines)


def cmd_retry(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /retry          -> retry every failed task
    /retry <id>     -> retry one task
    """
    if args:
        task = _resolve_task(state, args[0])
        if task is None:
            return f"No task matches {args[0]!r}."
        targets = [task]
    else:
        targets = state.store.list_tasks(status=ClassificationStatus.FAILED)
        if not targets:
            return "No failed tasks."

    retried = 0
    for t in targets:
        try:
            state.pipeline.retry(t.id)
        except ValueError as e:
            if emit:
                with contextlib.suppress(Exception):
                    emit(f"[retry] {e}")
            continue
        retried += 1
    return f"Retrying {retried} task(s)."


def cmd_weights(state: AppState, args: list[str]) -> str:
    """
    /weights                       -> show effective review weights
    /weights <perspective> <value> -> override one weight
    /weights reset                 -> back to personality defaults
    """
    personality = load_personality(state.store, state.settings)

    if args and args[0].lower() == "reset":
        reset_review_weights(state.store)
        return f"Review weights reset to {personality.value} defaults."

    if len(args) == 2:
        name = args[0].lower()
        if name not in PERSPECTIVES:
            return f"Unknown perspective {name!r}. Use one of: {', '.join(PERSPECTIVES)}"
        try:
            value = float(args[1])
        except ValueError:
            return "Weight must be a number."
        if not math.isfinite(value):
            return "Weight must be a finite number."
        current = load_review_weights(state.store, personality)
        updated = ReviewWeights.from_mapping({name: value}, base=current)
        save_review_weights(state.store, updated)

    weights = load_review_weights(state.store, personality).as_dict()
    return "Review weights: " + ", ".join(f"{k}={v:g}" for k, v in weights.items())


def cmd_personality(state: AppState, args: list[str]) -> str:
    if not args:
        current = load_personality(state.store, state.settings)
        lines = [f"Personality: {current.value} ({get_profile(current).name})"]
        for p, profile in PROFILES.items():
            lines.append(f"  {p.value}: {profile.description}")
        return "\n".join(lines)

    raw = args[0].lower()
    if raw not in {p.value for p in Personality}:
        return "Usage: /personality standard | yuru | maji"
    save_personality(state.store, Personality(raw))
    return f"Personality set to {raw} ({get_profile(raw).name})."


def cmd_keywords(state: AppState, args: list[str]) -> str:
    """
    /keywords                 -> list sanctuary keywords
    /keywords add <word...>   -> add one keyword (may contain spaces)
    /keywords remove <word...>
    """
    current = load_sanctuary_keywords(state.store, state.settings)
    sub = args[0].lower() if args else ""
    kw = " ".join(args[1:]).strip()

    if sub == "add" and kw:
        save_sanctuary_keywords(state.store, [*current, kw])
        return f"Sanctuary keyword added: {kw}"
    if sub == "remove" and kw:
        if kw not in current:
            return f"Not a sanctuary keyword: {kw}"
        save_sanctuary_keywords(state.store, [k for k in current if k != kw])
        return f"Sanctuary keyword removed: {kw}"
    if sub:
        return "Usage: /keywords [add <word> | remove <word>]"

    return "Sanctuary keywords: " + (", ".join(current) if current else "(none)")


def cmd_goal(state: AppState, args: list[str]) -> str:
    """
    /goal                          -> list goals
    /goal add <title>              -> create a long-term goal
    /goal link <task-id> <n>       -> link a task to goal number n
    """
    goals = state.store.list_goals()
    sub = args[0].lower() if args else ""

    if sub == "add":
        title = " ".join(args[1:]).strip()
        if not title:
            return "Usage: /goal add <title>"
        state.store.add_goal(title=title)
        return f"Goal added: {title}"

    if sub == "link":
        task = _resolve_task(state, args[1] if len(args) > 1 else None)
        try:
            goal = goals[int(args[2]) - 1]
        except (IndexError, ValueError):
            goal = None
        if task is None or goal is None:
            return "Usage: /goal link <task-id> <n>"
        state.store.update_task_fields(task.id, goal_id=goal.id)
        return f"Linked {_short(task.id)} to goal {goal.title!r}."

    if not goals:
        return "No goals."
    lines = ["Goals:"]
    for i, g in enumerate(goals, start=1):
        target = f" (by {g.target_date.isoformat()})" if g.target_date else ""
        lines.append(f"  {i}. {g.title}{target}")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show AI mode, personality, care mode and queue.")
registry.register("add", cmd_add, help_text="Add a task: /add <title> [!high] [@tomorrow] [#Work] [+recharge].")
registry.register("list", cmd_list, help_text="List open tasks (/list all includes completed).", aliases=["ls"])
registry.register("focus", cmd_focus, help_text="Show the focus task and what comes next.")
registry.register("skip", cmd_skip, help_text="Skip the focus task for now: /skip [id] | /skip clear.")
registry.register("done", cmd_done, help_text="Complete a task: /done <id>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("review", cmd_review, help_text="Show a task's review: /review <id>.")
registry.register("subtasks", cmd_subtasks, help_text="Subtasks: /subtasks <id> [accept | add <title> | done <n>].")
registry.register(
    "reschedule", cmd_reschedule, help_text="Move today's tasks to tomorrow: /reschedule schedule_change|rest|struggling."
)
registry.register("report", cmd_report, help_text="How do you feel today: /report good|normal|tough.")
registry.register("score", cmd_score, help_text="Show the wellness score.")
registry.register("care", cmd_care, help_text="Show care mode or leave it: /care [exit].")
registry.register("categories", cmd_categories, help_text="Categories: /categories [add|default|delete ...].")
registry.register("proposals", cmd_proposals, help_text="Subcategory proposals: /proposals [accept|dismiss <n>].")
registry.register("retry", cmd_retry, help_text="Retry failed enrichment: /retry [id].")
registry.register("weights", cmd_weights, help_text="Review weights: /weights [<perspective> <value> | reset].")
registry.register("personality", cmd_personality, help_text="Assistant personality: /personality [standard|yuru|maji].")
registry.register("keywords", cmd_keywords, help_text="Sanctuary keywords: /keywords [add|remove <word>].")
registry.register("goal", cmd_goal, help_text="Long-term goals: /goal [add <title> | link <id> <n>].")
