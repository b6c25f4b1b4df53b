"""Occurrence Engine - Pure logic for per-occurrence task resolution.

This engine provides stateless, pure Python functions for:
- Effective status of a recurring task on a given date
- Per-occurrence state (unresolved / completed / skipped)
- The next occurrence that is neither completed nor skipped
- Advancing scheduled/due dates while preserving the offset between them

ARCHITECTURE: All functions are static methods that operate on a frozen
TaskRecurrenceState. Mutating the exception lists belongs in
InstanceExceptionManager.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .. import const
from ..utils import dt_utils
from ..utils.dt_utils import CivilDate, CivilDateTime
from .schedule_engine import RecurrenceEngine, RecurrenceRule

if TYPE_CHECKING:
    from ..type_defs import InstanceState


# =============================================================================
# TASK STATE DATA STRUCTURES
# =============================================================================


@dataclass(frozen=True)
class TaskRecurrenceState:
    """Recurrence-relevant view of a task.

    Built from persisted data by data_builders.build_task_state().

    Attributes:
        status: Current status string, kept verbatim (e.g. "in-progress")
        recurrence: Parsed rule, or None for a one-off task
        anchor_mode: const.ANCHOR_MODE_SCHEDULED or const.ANCHOR_MODE_COMPLETION
        scheduled: Scheduled date (optionally timed)
        due: Due date (optionally timed)
        complete_instances: Occurrence dates recorded as done
        skipped_instances: Occurrence dates recorded as skipped
    """

    status: str = const.DEFAULT_STATUS
    recurrence: RecurrenceRule | None = None
    anchor_mode: str = const.DEFAULT_ANCHOR_MODE
    scheduled: CivilDateTime | None = None
    due: CivilDateTime | None = None
    complete_instances: frozenset[CivilDate] = field(default_factory=frozenset)
    skipped_instances: frozenset[CivilDate] = field(default_factory=frozenset)

    @property
    def is_recurring(self) -> bool:
        """Return True when the task carries a recurrence rule."""
        return self.recurrence is not None


@dataclass(frozen=True)
class ScheduleUpdate:
    """New scheduled/due values computed by the engine.

    Either value may be None when the task does not carry that field.
    """

    scheduled: CivilDateTime | None
    due: CivilDateTime | None


# =============================================================================
# OCCURRENCE ENGINE
# =============================================================================


class OccurrenceEngine:
    """Pure logic engine for occurrence resolution.

    All methods are static - no instance state. Methods that depend on the
    current date take an optional `today`; when omitted, dt_utils.today() is
    read once per call.
    """

    @staticmethod
    def get_effective_status(
        task: TaskRecurrenceState, on_date: CivilDate | CivilDateTime | str
    ) -> str:
        """Return the status a task has on a specific date.

        Only a recorded completion overrides the stored status, and only to
        const.STATUS_DONE. Custom statuses ("in-progress", "blocked") are
        returned unchanged for unresolved occurrences.

        Args:
            task: Task state
            on_date: Date under test (time-of-day is ignored)

        Returns:
            Effective status string.
        """
        if not task.is_recurring:
            return task.status
        day = dt_utils.coerce_civil(on_date).civil_date
        if day in task.complete_instances:
            return const.STATUS_DONE
        return task.status

    @staticmethod
    def get_instance_state(
        task: TaskRecurrenceState, on_date: CivilDate | CivilDateTime | str
    ) -> InstanceState:
        """Return the per-occurrence state for a date.

        Skip takes precedence over completion when both are recorded.

        Returns:
            One of const.INSTANCE_STATE_*.
        """
        day = dt_utils.coerce_civil(on_date).civil_date
        if day in task.skipped_instances:
            return const.INSTANCE_STATE_SKIPPED
        if day in task.complete_instances:
            return const.INSTANCE_STATE_COMPLETED
        return const.INSTANCE_STATE_UNRESOLVED

    @staticmethod
    def get_next_uncompleted_occurrence(
        task: TaskRecurrenceState, today: CivilDate | None = None
    ) -> CivilDate | None:
        """Return the next occurrence that is neither completed nor skipped.

        SCHEDULED mode walks the fixed calendar grid from max(anchor, today).
        COMPLETION mode floats the grid from the latest completion: the first
        occurrence strictly after it is the candidate, and an overdue
        candidate floats forward to today.

        Args:
            task: Task state
            today: Override for the current date

        Returns:
            The occurrence date, or None for a non-recurring task or a rule
            that can never recur.
        """
        rule = task.recurrence
        if rule is None:
            return None
        if today is None:
            today = dt_utils.today()

        if task.anchor_mode == const.ANCHOR_MODE_COMPLETION:
            engine, start = OccurrenceEngine._completion_search_start(
                task, rule, today
            )
        else:
            engine = RecurrenceEngine(rule)
            start = engine.occurrence_on_or_after(max(rule.anchor, today))

        if start is None:
            const.LOGGER.debug("No occurrence found for rule %s", rule)
            return None

        excluded = task.complete_instances | task.skipped_instances
        candidate: CivilDate | None = start
        # Each exception can block at most one step
        for _ in range(len(excluded) + 1):
            if candidate is None or candidate not in excluded:
                return candidate
            candidate = engine.occurrence_after(candidate)

        return None

    @staticmethod
    def update_to_next_scheduled_occurrence(
        task: TaskRecurrenceState,
        preserve_offset: bool = True,
        today: CivilDate | None = None,
    ) -> ScheduleUpdate:
        """Compute scheduled/due values for the next unresolved occurrence.

        Scheduled moves to the occurrence keeping its time-of-day. With
        `preserve_offset`, due shifts by the same number of days (any gap,
        including gaps wider than the interval); otherwise due lands on the
        occurrence date. A task with only a due date moves its due date.

        The result depends only on the rule, the exception sets and today,
        so repeated calls return identical values.

        Returns:
            ScheduleUpdate. Unchanged dates when there is no next occurrence.
        """
        next_date = OccurrenceEngine.get_next_uncompleted_occurrence(task, today)
        if next_date is None:
            return ScheduleUpdate(scheduled=task.scheduled, due=task.due)

        scheduled = task.scheduled
        due = task.due

        if scheduled is not None:
            delta = scheduled.civil_date.days_until(next_date)
            new_due = None
            if due is not None:
                new_due = (
                    due.shift_days(delta)
                    if preserve_offset
                    else due.with_date(next_date)
                )
            const.LOGGER.debug(
                "Advancing scheduled %s -> %s (delta %d days)",
                scheduled,
                next_date,
                delta,
            )
            return ScheduleUpdate(scheduled=scheduled.with_date(next_date), due=new_due)

        if due is not None:
            return ScheduleUpdate(scheduled=None, due=due.with_date(next_date))

        return ScheduleUpdate(scheduled=CivilDateTime(next_date), due=None)

    @staticmethod
    def is_overdue(task: TaskRecurrenceState, today: CivilDate | None = None) -> bool:
        """Check whether the task's due (else scheduled) date has passed.

        Recurring tasks are overdue only while the current occurrence is
        unresolved. Exceptions are keyed by the occurrence date, which is
        scheduled (else due), not the deadline. Non-recurring tasks marked done are never overdue.
        """
        reference = task.due or task.scheduled
        if reference is None:
            return False
        if today is None:
            today = dt_utils.today()
        if reference.civil_date >= today:
            return False
        if not task.is_recurring:
            return task.status != const.STATUS_DONE
        occurrence = task.scheduled or reference
        return (
            OccurrenceEngine.get_instance_state(task, occurrence.civil_date)
            == const.INSTANCE_STATE_UNRESOLVED
        )

    # =========================================================================
    # Private helpers
    # =========================================================================

    @staticmethod
    def _completion_search_start(
        task: TaskRecurrenceState, rule: RecurrenceRule, today: CivilDate
    ) -> tuple[RecurrenceEngine, CivilDate | None]:
        """Return the floated engine and first candidate for COMPLETION mode."""
        if not task.complete_instances and rule.anchor > today:
            # Not started yet: the first slot is the anchor itself
            engine = RecurrenceEngine(rule)
            return engine, rule.anchor

        base = max([rule.anchor, *task.complete_instances])
        engine = RecurrenceEngine(rule.rebased(base))
        first = engine.occurrence_after(base)
        if first is None or first >= today:
            return engine, first

        # Overdue: float to today
        const.LOGGER.debug(
            "Completion-anchored rule overdue since %s, floating to %s", first, today
        )
        if rule.by_day or rule.by_month_day:
            return engine, engine.occurrence_on_or_after(today)
        engine = RecurrenceEngine(rule.rebased(today))
        return engine, today
