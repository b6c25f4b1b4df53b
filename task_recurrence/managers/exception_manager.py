"""Instance Exception Manager - Skip/complete bookkeeping for recurring tasks.

Responsibilities:
- Add/remove exactly one date key in the skipped or completed instance set
- Re-derive scheduled/due dates through OccurrenceEngine after every change
- Answer "which skipped/completed dates precede this one" for revert UIs

Removing an exception restores the dates the engine would have produced
without it, because every re-derivation starts from the rule anchor rather
than from the task's current scheduled date.

ARCHITECTURE: The manager never mutates its input. Every operation returns
a new TaskRecurrenceState (or the same object for a no-op).
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from .. import const
from ..engines.occurrence_engine import OccurrenceEngine, TaskRecurrenceState
from ..utils import dt_utils

if TYPE_CHECKING:
    from ..utils.dt_utils import CivilDate, CivilDateTime


_FIELD_COMPLETE = "complete_instances"
_FIELD_SKIPPED = "skipped_instances"


class InstanceExceptionManager:
    """Manages the skip and completion exception sets of recurring tasks.

    Args:
        preserve_offset: Shift due by the same day delta as scheduled when
            re-deriving dates (False moves due onto the occurrence date).
    """

    def __init__(self, preserve_offset: bool = True) -> None:
        """Initialize the manager."""
        self._preserve_offset = preserve_offset

    # =========================================================================
    # Skip / Unskip
    # =========================================================================

    def skip_occurrence(
        self,
        task: TaskRecurrenceState,
        on_date: CivilDate | CivilDateTime | str,
        today: CivilDate | None = None,
    ) -> TaskRecurrenceState:
        """Record `on_date` as skipped and advance to the next occurrence."""
        return self._change_exception(task, _FIELD_SKIPPED, on_date, True, today)

    def unskip_occurrence(
        self,
        task: TaskRecurrenceState,
        on_date: CivilDate | CivilDateTime | str,
        today: CivilDate | None = None,
    ) -> TaskRecurrenceState:
        """Remove `on_date` from the skipped set and re-derive dates."""
        return self._change_exception(task, _FIELD_SKIPPED, on_date, False, today)

    def toggle_skipped(
        self,
        task: TaskRecurrenceState,
        on_date: CivilDate | CivilDateTime | str,
        today: CivilDate | None = None,
    ) -> TaskRecurrenceState:
        """Skip `on_date`, or unskip it if it is already skipped."""
        day = dt_utils.coerce_civil(on_date).civil_date
        if day in task.skipped_instances:
            return self.unskip_occurrence(task, day, today)
        return self.skip_occurrence(task, day, today)

    # =========================================================================
    # Complete / Incomplete
    # =========================================================================

    def mark_complete(
        self,
        task: TaskRecurrenceState,
        on_date: CivilDate | CivilDateTime | str,
        today: CivilDate | None = None,
    ) -> TaskRecurrenceState:
        """Record `on_date` as completed and advance to the next occurrence."""
        return self._change_exception(task, _FIELD_COMPLETE, on_date, True, today)

    def mark_incomplete(
        self,
        task: TaskRecurrenceState,
        on_date: CivilDate | CivilDateTime | str,
        today: CivilDate | None = None,
    ) -> TaskRecurrenceState:
        """Remove `on_date` from the completed set and re-derive dates."""
        return self._change_exception(task, _FIELD_COMPLETE, on_date, False, today)

    def toggle_complete(
        self,
        task: TaskRecurrenceState,
        on_date: CivilDate | CivilDateTime | str,
        today: CivilDate | None = None,
    ) -> TaskRecurrenceState:
        """Complete `on_date`, or revert the completion if already recorded."""
        day = dt_utils.coerce_civil(on_date).civil_date
        if day in task.complete_instances:
            return self.mark_incomplete(task, day, today)
        return self.mark_complete(task, day, today)

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def find_skipped_dates_before(
        task: TaskRecurrenceState, on_date: CivilDate | CivilDateTime | str
    ) -> list[CivilDate]:
        """Return skipped dates strictly before `on_date`, nearest first.

        Used by the UI to decide whether to offer "unskip".
        """
        day = dt_utils.coerce_civil(on_date).civil_date
        return sorted(
            (skipped for skipped in task.skipped_instances if skipped < day),
            reverse=True,
        )

    @staticmethod
    def find_completed_dates_before(
        task: TaskRecurrenceState, on_date: CivilDate | CivilDateTime | str
    ) -> list[CivilDate]:
        """Return completed dates strictly before `on_date`, nearest first."""
        day = dt_utils.coerce_civil(on_date).civil_date
        return sorted(
            (done for done in task.complete_instances if done < day),
            reverse=True,
        )

    # =========================================================================
    # Private
    # =========================================================================

    def _change_exception(
        self,
        task: TaskRecurrenceState,
        field_name: str,
        on_date: CivilDate | CivilDateTime | str,
        add: bool,
        today: CivilDate | None,
    ) -> TaskRecurrenceState:
        """Add or remove one date key, then re-derive scheduled/due."""
        if not task.is_recurring:
            const.LOGGER.debug(
                "Ignoring %s change on non-recurring task", field_name
            )
            return task

        day = dt_utils.coerce_civil(on_date).civil_date
        current: frozenset[CivilDate] = getattr(task, field_name)

        if add == (day in current):
            # Already in the requested state
            return task

        updated = current | {day} if add else current - {day}
        changed = replace(task, **{field_name: updated})

        update = OccurrenceEngine.update_to_next_scheduled_occurrence(
            changed, preserve_offset=self._preserve_offset, today=today
        )
        const.LOGGER.debug(
            "%s %s in %s; scheduled %s -> %s, due %s -> %s",
            "Added" if add else "Removed",
            day,
            field_name,
            task.scheduled,
            update.scheduled,
            task.due,
            update.due,
        )
        return replace(changed, scheduled=update.scheduled, due=update.due)
