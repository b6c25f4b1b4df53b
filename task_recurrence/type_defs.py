"""Type definitions for persisted task recurrence data.

Persisted task data arrives from the storage layer as plain dicts with fixed
keys, so TypedDict is used for it. The in-memory model (CivilDate,
RecurrenceRule, TaskRecurrenceState) uses frozen dataclasses defined next to
the logic that owns them.

NOTE: TypedDict is STATIC ANALYSIS ONLY. All runtime tolerance for missing or
malformed fields lives in data_builders.py.
"""

from typing import Literal, NotRequired, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

ISODate = str  # Storage date string "2026-01-18"
ISODateTime = str  # Storage date-time string "2026-01-18 14:30"
RecurrenceDescriptor = str  # "DTSTART:20260118;FREQ=WEEKLY;INTERVAL=2;BYDAY=MO"
AnchorMode = Literal["scheduled", "completion"]
InstanceState = Literal["unresolved", "completed", "skipped"]


# =============================================================================
# Persisted Task Data
# =============================================================================


class TaskRecurrenceData(TypedDict):
    """Subset of a persisted task relevant to recurrence resolution.

    All fields are optional because tasks are read from user-edited
    frontmatter and any of them may be missing.
    """

    status: NotRequired[str]
    recurrence: NotRequired[RecurrenceDescriptor | None]
    recurrence_anchor: NotRequired[AnchorMode | str]
    scheduled: NotRequired[ISODate | ISODateTime | None]
    due: NotRequired[ISODate | ISODateTime | None]
    complete_instances: NotRequired[list[ISODate]]
    skipped_instances: NotRequired[list[ISODate]]
