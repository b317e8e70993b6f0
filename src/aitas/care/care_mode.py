# src/aitas/care/care_mode.py

"""
Care mode: a temporary, time-boxed leniency state.

States:
- inactive
- active(reason, expires_at)

Entered by a bulk reschedule tagged "rest" (1 day) or "struggling" (3 days).
Left by explicit exit, by a "good" self-report while active, or lazily on load
once expires_at has passed. There is no background timer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Final

from ..core.ports import TaskRepo
from ..scoring.wellness import SelfReport
from ..storage.models import CareModeState, RescheduleReason, SelfReportLevel

logger = logging.getLogger(__name__)

KEY_ACTIVE: Final[str] = "careModeActive"
KEY_REASON: Final[str] = "careModeReason"
KEY_EXPIRES_AT: Final[str] = "careModeExpiresAt"
KEY_SELF_REPORT: Final[str] = "selfReport"
KEY_SELF_REPORT_DATE: Final[str] = "selfReportDate"

CARE_DURATIONS: Final[dict[RescheduleReason, timedelta]] = {
    RescheduleReason.REST: timedelta(days=1),
    RescheduleReason.STRUGGLING: timedelta(days=3),
}


@dataclass(frozen=True, slots=True)
class RescheduleOutcome:
    reason: RescheduleReason
    task_ids: list[str]
    new_due: date
    care: CareModeState


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CareModeController:
    def __init__(self, store: TaskRepo) -> None:
        self._store = store

    # ---- persistence ----

    def _read(self) -> CareModeState:
        active = (self._store.get_setting(KEY_ACTIVE) or "").lower() == "true"
        reason = RescheduleReason.from_db(self._store.get_setting(KEY_REASON))
        raw_exp = self._store.get_setting(KEY_EXPIRES_AT)
        expires_at: datetime | None = None
        if raw_exp:
            try:
                expires_at = datetime.fromisoformat(raw_exp)
            except ValueError:
                logger.warning("Unreadable care mode expiry %r; treating as expired.", raw_exp)
                expires_at = datetime.min.replace(tzinfo=UTC)
            else:
                if expires_at.tzinfo is None:
                    expires_at = expires_at.replace(tzinfo=UTC)
        return CareModeState(active=active, reason=reason, expires_at=expires_at)

    def _write(self, state: CareModeState) -> None:
        # One transaction: flag, reason and expiry always change together.
        self._store.set_settings(
            {
                KEY_ACTIVE: "true" if state.active else "false",
                KEY_REASON: state.reason.value if state.reason else "",
                KEY_EXPIRES_AT: state.expires_at.isoformat() if state.expires_at else "",
            }
        )

    # ---- transitions ----

    def load(self, now: datetime | None = None) -> CareModeState:
        """Current state, applying lazy expiry."""
        now = now or _utcnow()
        state = self._read()
        if not state.active:
            return CareModeState()
        if state.expires_at is None or state.expires_at <= now:
            logger.info("Care mode expired (reason=%s expires_at=%s)", state.reason, state.expires_at)
            self._write(CareModeState())
            return CareModeState()
        return state

    def is_active(self, now: datetime | None = None) -> bool:
        return self.load(now).active

    def enter(self, reason: RescheduleReason, now: datetime | None = None) -> CareModeState:
        reason = RescheduleReason(reason)
        duration = CARE_DURATIONS.get(reason)
        if duration is None:
            raise ValueError(f"care mode cannot be entered with reason={reason.value}")
        now = now or _utcnow()
        state = CareModeState(active=True, reason=reason, expires_at=now + duration)
        self._write(state)
        logger.info("Care mode entered reason=%s expires_at=%s", reason.value, state.expires_at)
        return state

    def exit(self) -> CareModeState:
        self._write(CareModeState())
        logger.info("Care mode exited")
        return CareModeState()

    # ---- self-report ----

    def record_self_report(self, level: SelfReportLevel, today: date | None = None) -> CareModeState:
        """Persist today's self-report; "good" while active leaves care mode."""
        level = SelfReportLevel(level)
        today = today or date.today()
        self._store.set_settings({KEY_SELF_REPORT: level.value, KEY_SELF_REPORT_DATE: today.isoformat()})
        state = self.load()
        if state.active and level == SelfReportLevel.GOOD:
            return self.exit()
        return state

    def load_self_report(self) -> SelfReport | None:
        level = SelfReportLevel.from_db(self._store.get_setting(KEY_SELF_REPORT))
        raw_date = self._store.get_setting(KEY_SELF_REPORT_DATE)
        if level is None or not raw_date:
            return None
        try:
            reported_on = date.fromisoformat(raw_date)
        except ValueError:
            return None
        return SelfReport(level=level, reported_on=reported_on)

    # ---- bulk reschedule ----

    def bulk_reschedule(
        self,
        reason: RescheduleReason,
        today: date | None = None,
        now: datetime | None = None,
    ) -> RescheduleOutcome:
        """
        Move every incomplete task due today to tomorrow, bump its reschedule
        counter, and log one history entry. The history entry is written for
        all three reasons; only "rest" and "struggling" enter care mode.
        """
        reason = RescheduleReason(reason)
        today = today or date.today()
        tomorrow = today + timedelta(days=1)

        affected = [
            t.id
            for t in self._store.list_tasks(include_completed=False)
            if t.due_date == today
        ]
        self._store.bulk_reschedule(affected, tomorrow)
        self._store.add_reschedule_record(reason, affected)
        logger.info("Bulk reschedule reason=%s moved=%d", reason.value, len(affected))

        if reason in CARE_DURATIONS:
            care = self.enter(reason, now=now)
        else:
            care = self.load(now)

        return RescheduleOutcome(reason=reason, task_ids=affected, new_due=tomorrow, care=care)
