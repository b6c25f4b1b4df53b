"""Conversion between persisted task dicts and TaskRecurrenceState.

This module is the SINGLE SOURCE OF TRUTH for:
- Reading recurrence-relevant task fields from storage
- Field defaults (status, anchor mode, empty instance lists)
- Validation messages for user-edited recurrence data
- Writing state back to storage form

### Build Functions
`build_task_state()` is tolerant: one malformed field never makes a task
unreadable. A bad recurrence descriptor downgrades the task to
non-recurring; bad dates and instance keys are dropped. Each downgrade is
logged as a warning.

### Validation Functions
`validate_task_data()` runs the same parsing strictly and returns
{field: message} (empty if valid) so callers can show the ParseError or
InvalidIntervalError detail next to the offending field.

Consumers:
- Storage layer (frontmatter read/write)
- UI action layer (before and after InstanceExceptionManager calls)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from . import const
from .engines.occurrence_engine import TaskRecurrenceState
from .engines.schedule_engine import (
    InvalidIntervalError,
    RecurrenceEngine,
    RecurrenceRule,
    extract_dtstart,
    parse_recurrence,
)
from .utils.dt_utils import CivilDate, CivilDateTime, ParseError

if TYPE_CHECKING:
    from .type_defs import TaskRecurrenceData

# ==============================================================================
# HELPER FUNCTIONS FOR FIELD NORMALIZATION
# ==============================================================================


def _normalize_list_field(value: Any) -> list[Any]:
    """Normalize a field that should be a list.

    Handles cases where the value might be:
    - Already a list → return as-is
    - None → return empty list
    - A single string → one-element list
    - A tuple or set → list of its items
    - Any other scalar (YAML int, bool, mapping) → one-element list, so the
      entry is rejected by the caller's per-item parsing

    This prevents bugs like list("2026-01-18") → ['2', '0', '2', '6', ...]
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, (tuple, set, frozenset)):
        return list(value)
    return [value]


def _parse_optional_datetime(value: Any) -> CivilDateTime | None:
    """Parse a scheduled/due value; None or "" means absent.

    Raises:
        ParseError: Malformed value.
    """
    if value is None or value == "":
        return None
    return CivilDateTime.from_storage_string(value)


def _parse_instance_list(value: Any) -> tuple[frozenset[CivilDate], list[str]]:
    """Parse an instance list, separating valid date keys from rejects.

    Returns:
        (valid dates, error messages for rejected entries)
    """
    dates: set[CivilDate] = set()
    rejected: list[str] = []
    for item in _normalize_list_field(value):
        try:
            # Keys may have been written with a time part by older clients
            dates.add(CivilDateTime.from_storage_string(item).civil_date)
        except ParseError as err:
            rejected.append(str(err))
    return frozenset(dates), rejected


def _parse_task_recurrence(
    value: Any,
    scheduled: CivilDateTime | None,
    due: CivilDateTime | None,
) -> RecurrenceRule | None:
    """Parse the recurrence field, anchoring on scheduled (else due) if needed.

    Raises:
        ParseError, InvalidIntervalError: Malformed descriptor.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if not isinstance(value, str):
        raise ParseError(value, "recurrence must be a string")
    fallback = scheduled or due
    return parse_recurrence(
        value, fallback_anchor=fallback.civil_date if fallback else None
    )


# ==============================================================================
# BUILD
# ==============================================================================


def build_task_state(
    data: TaskRecurrenceData | dict[str, Any],
) -> TaskRecurrenceState:
    """Build TaskRecurrenceState from a persisted task dict.

    Never raises for malformed content: see module docstring.

    Args:
        data: Task dict with DATA_TASK_* keys (all optional)

    Returns:
        Complete TaskRecurrenceState with defaults applied.
    """
    status = data.get(const.DATA_TASK_STATUS)
    if not isinstance(status, str) or not status:
        status = const.DEFAULT_STATUS

    dates: dict[str, CivilDateTime | None] = {}
    for key in (const.DATA_TASK_SCHEDULED, const.DATA_TASK_DUE):
        try:
            dates[key] = _parse_optional_datetime(data.get(key))
        except ParseError as err:
            const.LOGGER.warning("Ignoring malformed %s date: %s", key, err)
            dates[key] = None
    scheduled = dates[const.DATA_TASK_SCHEDULED]
    due = dates[const.DATA_TASK_DUE]

    anchor_mode = data.get(const.DATA_TASK_RECURRENCE_ANCHOR, const.DEFAULT_ANCHOR_MODE)
    if anchor_mode not in const.ANCHOR_MODE_OPTIONS:
        const.LOGGER.warning(
            "Unknown recurrence anchor %r, using %s",
            anchor_mode,
            const.DEFAULT_ANCHOR_MODE,
        )
        anchor_mode = const.DEFAULT_ANCHOR_MODE

    instances: dict[str, frozenset[CivilDate]] = {}
    for key in (const.DATA_TASK_COMPLETE_INSTANCES, const.DATA_TASK_SKIPPED_INSTANCES):
        instances[key], rejected = _parse_instance_list(data.get(key))
        for message in rejected:
            const.LOGGER.warning("Dropping malformed %s entry: %s", key, message)

    try:
        recurrence = _parse_task_recurrence(
            data.get(const.DATA_TASK_RECURRENCE), scheduled, due
        )
    except (ParseError, InvalidIntervalError) as err:
        const.LOGGER.warning(
            "Invalid recurrence %r, treating task as non-recurring: %s",
            data.get(const.DATA_TASK_RECURRENCE),
            err,
        )
        recurrence = None

    return TaskRecurrenceState(
        status=status,
        recurrence=recurrence,
        anchor_mode=anchor_mode,
        scheduled=scheduled,
        due=due,
        complete_instances=instances[const.DATA_TASK_COMPLETE_INSTANCES],
        skipped_instances=instances[const.DATA_TASK_SKIPPED_INSTANCES],
    )


# ==============================================================================
# VALIDATION
# ==============================================================================


def validate_task_data(
    data: TaskRecurrenceData | dict[str, Any],
) -> dict[str, str]:
    """Validate persisted task recurrence fields.

    Args:
        data: Task dict with DATA_TASK_* keys

    Returns:
        Dict of errors: {field: message}
        Empty dict means validation passed.

    Validation Rules:
        1. scheduled / due parse as storage dates or date-times
        2. recurrence_anchor is a known mode (if provided)
        3. instance lists hold only valid date keys
        4. recurrence parses, with an anchor from DTSTART or the dates
    """
    errors: dict[str, str] = {}

    # === 1. Dates ===
    parsed: dict[str, CivilDateTime | None] = {}
    for key in (const.DATA_TASK_SCHEDULED, const.DATA_TASK_DUE):
        try:
            parsed[key] = _parse_optional_datetime(data.get(key))
        except ParseError as err:
            errors[key] = str(err)
            parsed[key] = None

    # === 2. Anchor mode ===
    anchor_mode = data.get(const.DATA_TASK_RECURRENCE_ANCHOR)
    if anchor_mode is not None and anchor_mode not in const.ANCHOR_MODE_OPTIONS:
        errors[const.DATA_TASK_RECURRENCE_ANCHOR] = (
            f"Unknown recurrence anchor {anchor_mode!r}; "
            f"expected one of {', '.join(const.ANCHOR_MODE_OPTIONS)}"
        )

    # === 3. Instance lists ===
    for key in (const.DATA_TASK_COMPLETE_INSTANCES, const.DATA_TASK_SKIPPED_INSTANCES):
        _dates, rejected = _parse_instance_list(data.get(key))
        if rejected:
            errors[key] = rejected[0]

    # === 4. Recurrence ===
    try:
        _parse_task_recurrence(
            data.get(const.DATA_TASK_RECURRENCE),
            parsed[const.DATA_TASK_SCHEDULED],
            parsed[const.DATA_TASK_DUE],
        )
    except (ParseError, InvalidIntervalError) as err:
        errors[const.DATA_TASK_RECURRENCE] = str(err)

    return errors


# ==============================================================================
# SERIALIZE
# ==============================================================================


def serialize_task_state(
    state: TaskRecurrenceState,
    base: TaskRecurrenceData | dict[str, Any] | None = None,
) -> TaskRecurrenceData:
    """Write TaskRecurrenceState back to storage form.

    Args:
        state: State to persist
        base: Original task dict. Unrelated keys are carried over, and its
            recurrence string is kept verbatim when it still describes the
            same rule (so a DTSTART time or key order is not rewritten).

    Returns:
        New task dict. Absent dates and recurrence are removed; instance
        lists are sorted "YYYY-MM-DD" strings.
    """
    result: dict[str, Any] = dict(base) if base else {}

    result[const.DATA_TASK_STATUS] = state.status
    result[const.DATA_TASK_RECURRENCE_ANCHOR] = state.anchor_mode

    if state.recurrence is None:
        result.pop(const.DATA_TASK_RECURRENCE, None)
    else:
        result[const.DATA_TASK_RECURRENCE] = _recurrence_descriptor(
            state.recurrence, base
        )

    for key, value in (
        (const.DATA_TASK_SCHEDULED, state.scheduled),
        (const.DATA_TASK_DUE, state.due),
    ):
        if value is None:
            result.pop(key, None)
        else:
            result[key] = value.to_storage_string()

    result[const.DATA_TASK_COMPLETE_INSTANCES] = [
        day.to_storage_string() for day in sorted(state.complete_instances)
    ]
    result[const.DATA_TASK_SKIPPED_INSTANCES] = [
        day.to_storage_string() for day in sorted(state.skipped_instances)
    ]
    return cast("TaskRecurrenceData", result)


def _recurrence_descriptor(
    rule: RecurrenceRule, base: TaskRecurrenceData | dict[str, Any] | None
) -> str:
    """Return the stored descriptor if it still matches, else a fresh one.

    A fresh descriptor always carries DTSTART so the anchor no longer
    depends on the (moving) scheduled date.
    """
    original = (base or {}).get(const.DATA_TASK_RECURRENCE)
    if isinstance(original, str) and extract_dtstart(original) is not None:
        try:
            if parse_recurrence(original) == rule:
                return original
        except (ParseError, InvalidIntervalError) as err:
            const.LOGGER.debug("Rewriting unparseable recurrence %r: %s", original, err)
    return RecurrenceEngine(rule).to_rrule_string()
