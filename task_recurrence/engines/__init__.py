"""Engine modules for the task recurrence engine.

Contains specialized computation engines:
- schedule_engine: Recurrence rules, occurrence calculation, descriptor codec
- occurrence_engine: Effective status and next unresolved occurrence
"""

# Use relative imports within package to avoid mypy module resolution issues
from .occurrence_engine import OccurrenceEngine, ScheduleUpdate, TaskRecurrenceState
from .schedule_engine import (
    CalendarRecurrence,
    InvalidIntervalError,
    RecurrenceEngine,
    RecurrenceRule,
    extract_dtstart,
    format_exdates,
    is_calendar_compatible_rrule,
    parse_recurrence,
    to_calendar_recurrence,
)

__all__ = [
    "CalendarRecurrence",
    "InvalidIntervalError",
    "OccurrenceEngine",
    "RecurrenceEngine",
    "RecurrenceRule",
    "ScheduleUpdate",
    "TaskRecurrenceState",
    "extract_dtstart",
    "format_exdates",
    "is_calendar_compatible_rrule",
    "parse_recurrence",
    "to_calendar_recurrence",
]
