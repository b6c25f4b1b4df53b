"""Test helpers for task recurrence tests.

    from tests.helpers import d, make_task

- d: Parse a "YYYY-MM-DD" literal into a CivilDate
- dt: Parse a storage date or date-time into a CivilDateTime
- make_task: Build a TaskRecurrenceState from storage-style arguments
"""

from task_recurrence import const
from task_recurrence.engines.occurrence_engine import TaskRecurrenceState
from task_recurrence.engines.schedule_engine import parse_recurrence
from task_recurrence.utils.dt_utils import CivilDate, CivilDateTime


def d(value: str) -> CivilDate:
    """Return CivilDate for a "YYYY-MM-DD" literal."""
    return CivilDate.from_storage_string(value)


def dt(value: str) -> CivilDateTime:
    """Return CivilDateTime for "YYYY-MM-DD" or "YYYY-MM-DD HH:MM"."""
    return CivilDateTime.from_storage_string(value)


def make_task(
    recurrence: str | None = None,
    *,
    status: str = const.DEFAULT_STATUS,
    anchor_mode: str = const.ANCHOR_MODE_SCHEDULED,
    scheduled: str | None = None,
    due: str | None = None,
    complete: list[str] | None = None,
    skipped: list[str] | None = None,
) -> TaskRecurrenceState:
    """Build a TaskRecurrenceState the way the storage layer would.

    A descriptor without DTSTART is anchored on scheduled (else due).
    """
    scheduled_dt = dt(scheduled) if scheduled else None
    due_dt = dt(due) if due else None
    rule = None
    if recurrence is not None:
        fallback = scheduled_dt or due_dt
        rule = parse_recurrence(
            recurrence, fallback_anchor=fallback.civil_date if fallback else None
        )
    return TaskRecurrenceState(
        status=status,
        recurrence=rule,
        anchor_mode=anchor_mode,
        scheduled=scheduled_dt,
        due=due_dt,
        complete_instances=frozenset(d(value) for value in complete or []),
        skipped_instances=frozenset(d(value) for value in skipped or []),
    )


__all__ = ["d", "dt", "make_task"]
