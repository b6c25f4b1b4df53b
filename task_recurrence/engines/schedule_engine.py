"""Schedule Engine for task recurrence.

Occurrence calculation using a hybrid approach:
- Closed-form period arithmetic to jump straight to the right DAILY / WEEKLY /
  MONTHLY / YEARLY period, so INTERVAL=60 costs the same as INTERVAL=1
- `dateutil.rrule` to expand BYDAY / BYMONTHDAY inside a single month
- `dateutil.relativedelta` (through CivilDate) for month/year clamping
  (Jan 31 + 1 month = Feb 28, not skipped)

Also owns the recurrence descriptor codec
("DTSTART:20260208;FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,TH") and the calendar
export helpers that turn a descriptor plus exception lists into
RRULE/EXDATE lines.

IMPORTANT: This module must NOT import from occurrence_engine.py or managers.
Only import from const.py, utils and standard/third-party libraries.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
import re
from typing import TYPE_CHECKING, ClassVar

from dateutil.rrule import MONTHLY, rrule

from .. import const
from ..utils.dt_utils import CivilDate, ParseError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


_DTSTART_RE = re.compile(
    r"^DTSTART[:=](\d{8})(?:T(\d{6})Z?)?$", re.IGNORECASE | re.ASCII
)
_DTSTART_SEARCH_RE = re.compile(
    r"DTSTART:(\d{8})(?:T(\d{2})(\d{2})(\d{2})Z?)?", re.ASCII
)
_ORDINAL_BYDAY_RE = re.compile(r"^[+-]?\d+[A-Z]{2}$", re.ASCII)
_INTEGER_RE = re.compile(r"^[+-]?\d+$", re.ASCII)


# =============================================================================
# Exceptions
# =============================================================================


class InvalidIntervalError(ValueError):
    """Raised when a recurrence interval is not a positive integer.

    Attributes:
        interval: The rejected value, exactly as supplied
    """

    def __init__(self, interval: object) -> None:
        """Initialize InvalidIntervalError.

        Args:
            interval: The rejected interval value
        """
        self.interval = interval
        super().__init__(
            f"Invalid recurrence interval {interval!r}: must be an integer >= 1"
        )


# =============================================================================
# Recurrence Rule
# =============================================================================


@dataclass(frozen=True)
class RecurrenceRule:
    """An open-ended recurrence rule anchored on a civil date.

    The anchor is always an occurrence. `by_day` holds weekday indexes
    (0=Monday); `by_month_day` holds days 1..31. Which constraints a
    frequency accepts is fixed in const; anything else is rejected here
    rather than ignored.

    Attributes:
        anchor: First occurrence (DTSTART)
        frequency: One of const.FREQUENCY_*
        interval: Period multiple, >= 1
        by_day: Weekday restriction (DAILY, WEEKLY, MONTHLY)
        by_month_day: Day-of-month restriction (MONTHLY)
        week_start: Weekday that opens a WEEKLY period (WKST)
    """

    anchor: CivilDate
    frequency: str
    interval: int = const.DEFAULT_INTERVAL
    by_day: frozenset[int] = frozenset()
    by_month_day: frozenset[int] = frozenset()
    week_start: int = const.DEFAULT_WEEK_START

    def __post_init__(self) -> None:
        """Validate and normalize the rule."""
        if not isinstance(self.anchor, CivilDate):
            raise ParseError(self.anchor, "recurrence anchor must be a CivilDate")
        if self.frequency not in const.FREQUENCY_OPTIONS:
            raise ParseError(self.frequency, "unsupported frequency")
        if (
            not isinstance(self.interval, int)
            or isinstance(self.interval, bool)
            or self.interval < 1
        ):
            raise InvalidIntervalError(self.interval)

        # Accept any iterable from callers, store frozensets
        object.__setattr__(self, "by_day", frozenset(self.by_day))
        object.__setattr__(self, "by_month_day", frozenset(self.by_month_day))

        if self.by_day:
            if self.frequency not in const.FREQUENCY_ALLOWS_BY_DAY:
                raise ParseError(self.frequency, "BYDAY is not supported here")
            if any(day not in range(7) for day in self.by_day):
                raise ParseError(sorted(self.by_day), "weekday out of range")
        if self.by_month_day:
            if self.frequency not in const.FREQUENCY_ALLOWS_BY_MONTH_DAY:
                raise ParseError(self.frequency, "BYMONTHDAY is not supported here")
            if any(day not in range(1, 32) for day in self.by_month_day):
                raise ParseError(sorted(self.by_month_day), "month day out of range")
        if self.week_start not in range(7):
            raise ParseError(self.week_start, "week start out of range")

    def rebased(self, anchor: CivilDate) -> RecurrenceRule:
        """Return the same rule anchored on another date."""
        return replace(self, anchor=anchor)


# =============================================================================
# Recurrence Engine
# =============================================================================


class RecurrenceEngine:
    """Occurrence calculator for a single RecurrenceRule.

    Every query maps the reference date to its period index relative to the
    anchor's period, rounds to the next (or previous) multiple of the
    interval, and only then looks at the handful of dates inside that
    period. No query walks one day or one period at a time across the gap.
    """

    # Frequencies whose period content is expanded with rrule
    RRULE_EXPANDED_FREQUENCIES: ClassVar[set[str]] = {const.FREQUENCY_MONTHLY}

    def __init__(self, rule: RecurrenceRule) -> None:
        """Initialize the engine.

        Args:
            rule: Validated RecurrenceRule.
        """
        self._rule = rule
        self._anchor = rule.anchor
        self._frequency = rule.frequency
        self._interval = rule.interval

    @property
    def rule(self) -> RecurrenceRule:
        """Return the rule this engine evaluates."""
        return self._rule

    def occurrence_on_or_after(self, reference: CivilDate) -> CivilDate | None:
        """Return the earliest occurrence on or after `reference`.

        Args:
            reference: Civil date to search from (inclusive).

        Returns:
            The occurrence, or None for a degenerate rule that never lands
            again (e.g. BYMONTHDAY=30 on a February-only schedule).
        """
        if reference <= self._anchor:
            return self._anchor

        index = self._period_index(reference)
        # Round up to the next active period
        active = -(-index // self._interval) * self._interval

        for _ in range(const.MAX_EMPTY_PERIODS):
            for candidate in self._period_occurrences(active):
                if candidate >= reference:
                    return candidate
            active += self._interval

        const.LOGGER.debug(
            "RecurrenceEngine: No occurrence on or after %s for %s",
            reference,
            self._rule,
        )
        return None

    def occurrence_on_or_before(self, reference: CivilDate) -> CivilDate | None:
        """Return the latest occurrence on or before `reference`.

        Returns:
            The occurrence, or None when `reference` precedes the anchor.
        """
        if reference < self._anchor:
            return None

        index = self._period_index(reference)
        active = (index // self._interval) * self._interval

        for _ in range(const.MAX_EMPTY_PERIODS):
            if active < 0:
                break
            candidates = [
                candidate
                for candidate in self._period_occurrences(active)
                if candidate <= reference
            ]
            if candidates:
                return candidates[-1]
            active -= self._interval

        # Every active period in range was empty; the anchor always counts
        return self._anchor

    def occurrence_after(self, reference: CivilDate) -> CivilDate | None:
        """Return the first occurrence strictly after `reference`."""
        return self.occurrence_on_or_after(reference.add_days(1))

    def occurrence_before(self, reference: CivilDate) -> CivilDate | None:
        """Return the last occurrence strictly before `reference`."""
        return self.occurrence_on_or_before(reference.add_days(-1))

    def is_occurrence(self, value: CivilDate) -> bool:
        """Return True when `value` lies on the rule's grid."""
        return self.occurrence_on_or_after(value) == value

    def iter_occurrences(self, start: CivilDate) -> Iterator[CivilDate]:
        """Yield occurrences on or after `start`, in order, without end."""
        current = self.occurrence_on_or_after(start)
        while current is not None:
            yield current
            current = self.occurrence_after(current)

    def get_occurrences(
        self,
        start: CivilDate,
        end: CivilDate,
        limit: int = const.DEFAULT_OCCURRENCE_LIMIT,
    ) -> list[CivilDate]:
        """Generate occurrences within an inclusive date range.

        Args:
            start: Range start.
            end: Range end.
            limit: Maximum occurrences to return (safety limit).

        Returns:
            Occurrence dates in calendar order.
        """
        occurrences: list[CivilDate] = []
        for occurrence in self.iter_occurrences(start):
            if occurrence > end or len(occurrences) >= limit:
                break
            occurrences.append(occurrence)
        return occurrences

    def to_rrule_string(self, include_dtstart: bool = True) -> str:
        """Serialize the rule back to descriptor form.

        Returns:
            e.g. "DTSTART:20260208;FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,TH"
        """
        rule = self._rule
        parts: list[str] = []
        if include_dtstart:
            parts.append(f"{const.RRULE_DTSTART}:{rule.anchor.to_compact_string()}")
        parts.append(f"{const.RRULE_FREQ}={rule.frequency}")
        parts.append(f"{const.RRULE_INTERVAL}={rule.interval}")
        if rule.by_day:
            days = ",".join(const.WEEKDAY_CODES[day] for day in sorted(rule.by_day))
            parts.append(f"{const.RRULE_BYDAY}={days}")
        if rule.by_month_day:
            month_days = ",".join(str(day) for day in sorted(rule.by_month_day))
            parts.append(f"{const.RRULE_BYMONTHDAY}={month_days}")
        if rule.week_start != const.DEFAULT_WEEK_START:
            parts.append(f"{const.RRULE_WKST}={const.WEEKDAY_CODES[rule.week_start]}")
        return ";".join(parts)

    # =========================================================================
    # Private: period arithmetic
    # =========================================================================

    def _period_index(self, value: CivilDate) -> int:
        """Return how many periods `value` lies after the anchor's period."""
        anchor = self._anchor
        freq = self._frequency

        if freq == const.FREQUENCY_DAILY:
            return anchor.days_until(value)
        if freq == const.FREQUENCY_WEEKLY:
            anchor_week = self._start_of_week(anchor)
            return anchor_week.days_until(self._start_of_week(value)) // 7
        if freq == const.FREQUENCY_MONTHLY:
            return (value.year - anchor.year) * 12 + value.month - anchor.month
        return value.year - anchor.year

    def _period_occurrences(self, index: int) -> list[CivilDate]:
        """Return the sorted occurrences inside period `index`.

        Dates before the anchor are dropped; the anchor itself is always
        included in period 0.
        """
        anchor = self._anchor
        rule = self._rule
        freq = self._frequency
        candidates: list[CivilDate]

        if freq == const.FREQUENCY_DAILY:
            day = anchor.add_days(index)
            matches = not rule.by_day or day.weekday() in rule.by_day
            candidates = [day] if matches else []
        elif freq == const.FREQUENCY_WEEKLY:
            week_start = self._start_of_week(anchor).add_days(index * 7)
            weekdays = rule.by_day or {anchor.weekday()}
            candidates = [
                week_start.add_days((weekday - rule.week_start) % 7)
                for weekday in weekdays
            ]
        elif freq in self.RRULE_EXPANDED_FREQUENCIES and (
            rule.by_day or rule.by_month_day
        ):
            month_start = CivilDate(anchor.year, anchor.month, 1)
            candidates = self._expand_month(month_start.add_months_clamped(index))
        elif freq == const.FREQUENCY_MONTHLY:
            # Always offset from the anchor, never chained: Jan 31 -> Feb 28 -> Mar 31
            candidates = [anchor.add_months_clamped(index)]
        else:
            candidates = [anchor.add_years(index)]

        occurrences = {candidate for candidate in candidates if candidate >= anchor}
        if index == 0:
            occurrences.add(anchor)
        return sorted(occurrences)

    def _expand_month(self, month_start: CivilDate) -> list[CivilDate]:
        """Expand BYDAY/BYMONTHDAY within one month using rrule.

        Days that do not exist in the month (BYMONTHDAY=31 in April) are
        skipped, as RFC 5545 requires.
        """
        rule = self._rule
        month_end = month_start.add_months_clamped(1).add_days(-1)
        expansion = rrule(
            MONTHLY,
            dtstart=datetime.combine(month_start.to_date(), datetime.min.time()),
            until=datetime.combine(month_end.to_date(), datetime.min.time()),
            bymonthday=tuple(sorted(rule.by_month_day)) or None,
            byweekday=tuple(sorted(rule.by_day)) or None,
        )
        return [CivilDate.from_date(occurrence) for occurrence in expansion]

    def _start_of_week(self, value: CivilDate) -> CivilDate:
        """Return the first day of the week containing `value` (per WKST)."""
        return value.add_days(-((value.weekday() - self._rule.week_start) % 7))


# =============================================================================
# Descriptor parsing
# =============================================================================


def parse_recurrence(
    descriptor: str, fallback_anchor: CivilDate | None = None
) -> RecurrenceRule:
    """Parse a recurrence descriptor into a RecurrenceRule.

    Accepts "DTSTART:YYYYMMDD;FREQ=...;INTERVAL=...;BYDAY=...;BYMONTHDAY=...",
    with an optional "RRULE:" prefix on the rule part and an optional
    "THHMMSS[Z]" on DTSTART (the time is not part of the civil anchor).

    Args:
        descriptor: The persisted recurrence string.
        fallback_anchor: Anchor to use when DTSTART is absent (typically the
            task's scheduled or due date).

    Returns:
        The parsed rule. INTERVAL defaults to 1.

    Raises:
        ParseError: Malformed descriptor, missing anchor, or any component
            this engine does not model (COUNT, UNTIL, ordinal BYDAY, ...).
        InvalidIntervalError: INTERVAL is not a positive integer.
    """
    if not isinstance(descriptor, str) or not descriptor.strip():
        raise ParseError(descriptor, "empty recurrence descriptor")

    anchor: CivilDate | None = None
    fields: dict[str, str] = {}

    for raw_part in re.split(r"[;\n]", descriptor.strip()):
        part = raw_part.strip()
        if part.upper().startswith(const.RRULE_PREFIX):
            part = part[len(const.RRULE_PREFIX) :].strip()
        if not part:
            continue

        if part.upper().startswith(const.RRULE_DTSTART):
            match = _DTSTART_RE.match(part)
            if not match:
                raise ParseError(descriptor, f"malformed DTSTART {part!r}")
            anchor = CivilDate.from_compact_string(match.group(1))
            continue

        key, sep, value = part.partition("=")
        key = key.strip().upper()
        value = value.strip().upper()
        if not sep or not key or not value:
            raise ParseError(descriptor, f"malformed component {part!r}")
        if key in const.RRULE_UNSUPPORTED_KEYS:
            raise ParseError(descriptor, f"{key} is not supported")
        if key in fields:
            raise ParseError(descriptor, f"duplicate {key}")
        fields[key] = value

    known = {
        const.RRULE_FREQ,
        const.RRULE_INTERVAL,
        const.RRULE_BYDAY,
        const.RRULE_BYMONTHDAY,
        const.RRULE_WKST,
    }
    unknown = sorted(set(fields) - known)
    if unknown:
        raise ParseError(descriptor, f"unknown component(s) {', '.join(unknown)}")

    frequency = fields.get(const.RRULE_FREQ)
    if not frequency:
        raise ParseError(descriptor, "missing FREQ")

    interval: int = const.DEFAULT_INTERVAL
    raw_interval = fields.get(const.RRULE_INTERVAL)
    if raw_interval is not None:
        if not _INTEGER_RE.match(raw_interval):
            raise InvalidIntervalError(raw_interval)
        interval = int(raw_interval)

    by_day = _parse_weekday_list(fields.get(const.RRULE_BYDAY), descriptor)
    by_month_day = _parse_month_day_list(
        fields.get(const.RRULE_BYMONTHDAY), descriptor
    )

    week_start = const.DEFAULT_WEEK_START
    raw_wkst = fields.get(const.RRULE_WKST)
    if raw_wkst is not None:
        if raw_wkst not in const.WEEKDAY_INDEX:
            raise ParseError(descriptor, f"invalid WKST {raw_wkst!r}")
        week_start = const.WEEKDAY_INDEX[raw_wkst]

    anchor = anchor or fallback_anchor
    if anchor is None:
        raise ParseError(descriptor, "missing DTSTART and no fallback anchor")

    return RecurrenceRule(
        anchor=anchor,
        frequency=frequency,
        interval=interval,
        by_day=by_day,
        by_month_day=by_month_day,
        week_start=week_start,
    )


def _parse_weekday_list(raw: str | None, descriptor: str) -> frozenset[int]:
    """Parse "MO,WE,FR" into weekday indexes."""
    if raw is None:
        return frozenset()
    days: set[int] = set()
    for code in (item.strip() for item in raw.split(",")):
        if _ORDINAL_BYDAY_RE.match(code):
            raise ParseError(descriptor, f"ordinal BYDAY {code!r} is not supported")
        if code not in const.WEEKDAY_INDEX:
            raise ParseError(descriptor, f"invalid BYDAY {code!r}")
        days.add(const.WEEKDAY_INDEX[code])
    return frozenset(days)


def _parse_month_day_list(raw: str | None, descriptor: str) -> frozenset[int]:
    """Parse "1,15,31" into month days."""
    if raw is None:
        return frozenset()
    days: set[int] = set()
    for item in (item.strip() for item in raw.split(",")):
        if not _INTEGER_RE.match(item):
            raise ParseError(descriptor, f"invalid BYMONTHDAY {item!r}")
        day = int(item)
        if day < 1:
            raise ParseError(descriptor, f"BYMONTHDAY {day} is not supported")
        days.add(day)
    return frozenset(days)


# =============================================================================
# Calendar export
# =============================================================================


@dataclass(frozen=True)
class CalendarRecurrence:
    """Recurrence in the shape calendar services expect.

    Attributes:
        recurrence: "RRULE:..." followed by one "EXDATE:YYYYMMDD" per exception
        dtstart: Start date "YYYY-MM-DD" (sent separately from the rule)
        has_time: Whether DTSTART carried a time
        time: "HH:MM:SS" when has_time
    """

    recurrence: tuple[str, ...]
    dtstart: str
    has_time: bool = False
    time: str | None = None


def to_calendar_recurrence(
    descriptor: str,
    completed: Iterable[CivilDate | str] = (),
    skipped: Iterable[CivilDate | str] = (),
) -> CalendarRecurrence | None:
    """Convert a descriptor plus exception lists to calendar form.

    DTSTART is moved out of the rule, and completed/skipped instances become
    EXDATE lines so the calendar does not show resolved occurrences.

    Returns:
        CalendarRecurrence, or None when the descriptor has no DTSTART or
        cannot be parsed.
    """
    if not descriptor:
        return None
    match = _DTSTART_SEARCH_RE.search(descriptor)
    if not match:
        return None

    try:
        rule = parse_recurrence(descriptor)
    except (ParseError, InvalidIntervalError) as err:
        const.LOGGER.debug("Calendar export skipped for %r: %s", descriptor, err)
        return None

    engine = RecurrenceEngine(rule)
    body = engine.to_rrule_string(include_dtstart=False)
    recurrence = [f"{const.RRULE_PREFIX}{body}"]
    recurrence.extend(format_exdates([*completed, *skipped]))

    hour, minute, second = match.group(2), match.group(3), match.group(4)
    time = f"{hour}:{minute}:{second}" if hour else None

    return CalendarRecurrence(
        recurrence=tuple(recurrence),
        dtstart=rule.anchor.to_storage_string(),
        has_time=time is not None,
        time=time,
    )


def format_exdates(dates: Iterable[CivilDate | str]) -> list[str]:
    """Format dates as "EXDATE:YYYYMMDD" lines.

    Malformed strings are dropped; duplicates are emitted once, in first-seen
    order.
    """
    lines: list[str] = []
    seen: set[CivilDate] = set()
    for value in dates:
        if isinstance(value, CivilDate):
            civil = value
        else:
            try:
                civil = CivilDate.from_storage_string(value)
            except ParseError:
                const.LOGGER.debug("Dropping malformed EXDATE value %r", value)
                continue
        if civil in seen:
            continue
        seen.add(civil)
        lines.append(f"{const.RRULE_EXDATE}:{civil.to_compact_string()}")
    return lines


def is_calendar_compatible_rrule(descriptor: str) -> bool:
    """Return True when calendar services can take the descriptor's rule."""
    if not descriptor or "FREQ=" not in descriptor:
        return False
    if not re.search(r"FREQ=(DAILY|WEEKLY|MONTHLY|YEARLY)", descriptor):
        return False
    return not any(f"{key}=" in descriptor for key in const.CALENDAR_UNSUPPORTED_KEYS)


def extract_dtstart(descriptor: str) -> CivilDate | None:
    """Return the DTSTART date of a descriptor, or None if absent/invalid."""
    if not descriptor:
        return None
    match = _DTSTART_SEARCH_RE.search(descriptor)
    if not match:
        return None
    try:
        return CivilDate.from_compact_string(match.group(1))
    except ParseError:
        return None
