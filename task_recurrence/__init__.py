"""Recurrence and date-resolution engine for recurring tasks.

Computes, for a task with an optional recurrence rule, which calendar
occurrence is current, which occurrences are completed or skipped, and how
to advance the task's scheduled/due dates to the next unresolved one.

Layers (leaf first):
    utils.dt_utils               Civil dates, "today", comparisons
    engines.schedule_engine      Recurrence rules and occurrence calculation
    engines.occurrence_engine    Effective status and next occurrence
    managers.exception_manager   Skip/complete bookkeeping
    data_builders                Storage dict <-> TaskRecurrenceState
"""

from .data_builders import build_task_state, serialize_task_state, validate_task_data
from .engines import (
    CalendarRecurrence,
    InvalidIntervalError,
    OccurrenceEngine,
    RecurrenceEngine,
    RecurrenceRule,
    ScheduleUpdate,
    TaskRecurrenceState,
    parse_recurrence,
    to_calendar_recurrence,
)
from .managers import InstanceExceptionManager
from .utils.dt_utils import (
    CivilDate,
    CivilDateTime,
    ParseError,
    is_before_time_aware,
    is_on_or_after,
    is_on_or_before,
    is_same_calendar_day,
    set_default_timezone,
    today,
)

__all__ = [
    "CalendarRecurrence",
    "CivilDate",
    "CivilDateTime",
    "InstanceExceptionManager",
    "InvalidIntervalError",
    "OccurrenceEngine",
    "ParseError",
    "RecurrenceEngine",
    "RecurrenceRule",
    "ScheduleUpdate",
    "TaskRecurrenceState",
    "build_task_state",
    "is_before_time_aware",
    "is_on_or_after",
    "is_on_or_before",
    "is_same_calendar_day",
    "parse_recurrence",
    "serialize_task_state",
    "set_default_timezone",
    "today",
    "validate_task_data",
]
