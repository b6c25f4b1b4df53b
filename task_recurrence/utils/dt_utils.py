# File: utils/dt_utils.py
"""Civil date model and timezone-safe comparison helpers.

Pure Python date functions with ZERO host-application dependencies.
All functions here can be unit tested without mocking anything but the clock.

A civil date is a calendar day (year, month, day) that carries no timezone.
All storage and rule arithmetic happens in civil-date space. The only place
that reads the host clock is `today()`; everything else takes explicit
values, so a UTC-midnight timestamp can never leak into "what day is it".

Types:
    - CivilDate: Immutable, always-normalized calendar date
    - CivilDateTime: CivilDate plus optional local hour/minute
    - ParseError: Raised for malformed date input

Functions:
    - set_default_timezone / get_default_timezone: Zone used by today()
    - today / today_string: Current local calendar date
    - coerce_civil: Normalize str/date/datetime/Civil* input
    - is_same_calendar_day: Compare date portions only
    - is_before_time_aware: Strict ordering with bare-date-as-whole-day rule
    - is_on_or_before / is_on_or_after: Composite filter comparisons
"""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import MAXYEAR, MINYEAR, UTC, date, datetime, timedelta
import re
from typing import TYPE_CHECKING

from dateutil.relativedelta import relativedelta

if TYPE_CHECKING:
    from datetime import tzinfo


# ==============================================================================
# Constants (local copies to avoid circular imports)
# ==============================================================================

# None means "the host's local zone"
DEFAULT_TIME_ZONE: tzinfo | None = None

STORAGE_TIME_SEPARATOR = " "

_STORAGE_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$", re.ASCII)
_STORAGE_DATETIME_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})(?:[T ](\d{2}):(\d{2})(?::(\d{2}))?)?$",
    re.ASCII,
)
_COMPACT_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$", re.ASCII)


# ==============================================================================
# Exceptions
# ==============================================================================


class ParseError(ValueError):
    """Raised when a date string or recurrence descriptor is malformed.

    Attributes:
        value: The offending input (stringified)
        reason: Short human-readable explanation
    """

    def __init__(self, value: object, reason: str) -> None:
        """Initialize ParseError.

        Args:
            value: The input that could not be parsed
            reason: Why it was rejected
        """
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Cannot parse {self.value!r}: {reason}")


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: tzinfo | None) -> None:
    """Set the zone `today()` uses when no explicit zone is passed.

    Args:
        tz: A tzinfo (e.g. ZoneInfo("Europe/Berlin")), or None for host local
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz


def get_default_timezone() -> tzinfo | None:
    """Return the configured default zone (None means host local)."""
    return DEFAULT_TIME_ZONE


# ==============================================================================
# Civil Date Model
# ==============================================================================


@dataclass(frozen=True, order=True)
class CivilDate:
    """A calendar date independent of time-of-day and timezone.

    Always normalized: construction rejects month 13, Feb 30 and friends.
    Ordering follows the calendar.
    """

    year: int
    month: int
    day: int

    def __post_init__(self) -> None:
        """Validate components."""
        raw = f"{self.year}-{self.month}-{self.day}"
        for value in (self.year, self.month, self.day):
            if not isinstance(value, int) or isinstance(value, bool):
                raise ParseError(raw, "date components must be integers")
        if not MINYEAR <= self.year <= MAXYEAR:
            raise ParseError(raw, "year out of range")
        if not 1 <= self.month <= 12:
            raise ParseError(raw, "month out of range")
        if not 1 <= self.day <= monthrange(self.year, self.month)[1]:
            raise ParseError(raw, "day out of range for month")

    # --------------------------------------------------------------------------
    # Construction
    # --------------------------------------------------------------------------

    @classmethod
    def from_storage_string(cls, value: str) -> CivilDate:
        """Parse a strict "YYYY-MM-DD" storage string.

        Raises:
            ParseError: Wrong shape, wrong digit count or out-of-range parts.
        """
        if not isinstance(value, str):
            raise ParseError(value, "expected a YYYY-MM-DD string")
        match = _STORAGE_DATE_RE.match(value.strip())
        if not match:
            raise ParseError(value, "expected YYYY-MM-DD")
        year, month, day = (int(part) for part in match.groups())
        try:
            return cls(year, month, day)
        except ParseError as err:
            raise ParseError(value, err.reason) from err

    @classmethod
    def from_compact_string(cls, value: str) -> CivilDate:
        """Parse a compact "YYYYMMDD" string (DTSTART / EXDATE form)."""
        if not isinstance(value, str):
            raise ParseError(value, "expected a YYYYMMDD string")
        match = _COMPACT_DATE_RE.match(value.strip())
        if not match:
            raise ParseError(value, "expected YYYYMMDD")
        year, month, day = (int(part) for part in match.groups())
        try:
            return cls(year, month, day)
        except ParseError as err:
            raise ParseError(value, err.reason) from err

    @classmethod
    def from_date(cls, value: date) -> CivilDate:
        """Build from a `datetime.date` (or the date part of a datetime)."""
        return cls(value.year, value.month, value.day)

    @classmethod
    def from_utc_anchor(cls, instant: datetime) -> CivilDate:
        """Recover the civil date from a UTC-anchored instant.

        Naive instants are taken to be UTC already.
        """
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        return cls.from_date(instant.astimezone(UTC))

    # --------------------------------------------------------------------------
    # Serialization
    # --------------------------------------------------------------------------

    def to_storage_string(self) -> str:
        """Return "YYYY-MM-DD"."""
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    def to_compact_string(self) -> str:
        """Return "YYYYMMDD"."""
        return f"{self.year:04d}{self.month:02d}{self.day:02d}"

    def to_utc_anchor(self) -> datetime:
        """Return 00:00:00 UTC on this date.

        For storage/transmission only. Never use the result to decide which
        day it is locally.
        """
        return datetime(self.year, self.month, self.day, tzinfo=UTC)

    def to_date(self) -> date:
        """Return the equivalent `datetime.date`."""
        return date(self.year, self.month, self.day)

    def __str__(self) -> str:
        return self.to_storage_string()

    # --------------------------------------------------------------------------
    # Arithmetic
    # --------------------------------------------------------------------------

    def add_days(self, days: int) -> CivilDate:
        """Return the date `days` later (negative moves back)."""
        return CivilDate.from_date(self.to_date() + timedelta(days=days))

    def add_months_clamped(self, months: int) -> CivilDate:
        """Add months, clamping the day to the target month's length.

        Jan 31 + 1 month = Feb 28 (or Feb 29 in a leap year).
        """
        return CivilDate.from_date(self.to_date() + relativedelta(months=months))

    def add_years(self, years: int) -> CivilDate:
        """Add years, clamping Feb 29 to Feb 28 in non-leap years."""
        return CivilDate.from_date(self.to_date() + relativedelta(years=years))

    def days_until(self, other: CivilDate) -> int:
        """Return `other - self` in whole days."""
        return (other.to_date() - self.to_date()).days

    def weekday(self) -> int:
        """Return the weekday (0=Monday, 6=Sunday)."""
        return self.to_date().weekday()

    def compare(self, other: CivilDate | CivilDateTime) -> int:
        """Return -1, 0 or 1 by calendar order, ignoring any time-of-day."""
        if isinstance(other, CivilDateTime):
            other = other.civil_date
        if self < other:
            return -1
        if self > other:
            return 1
        return 0


@dataclass(frozen=True)
class CivilDateTime:
    """A civil date with an optional local time-of-day.

    Without a time the value is a pure date. With a time it anchors a moment
    in the local calendar sense (not UTC wall-clock). Hour and minute are set
    together or not at all.
    """

    civil_date: CivilDate
    hour: int | None = None
    minute: int | None = None

    def __post_init__(self) -> None:
        """Validate the optional time component."""
        if (self.hour is None) != (self.minute is None):
            raise ParseError(
                f"{self.civil_date} {self.hour}:{self.minute}",
                "hour and minute must be given together",
            )
        if self.hour is None:
            return
        raw = f"{self.civil_date} {self.hour}:{self.minute}"
        for value in (self.hour, self.minute):
            if not isinstance(value, int) or isinstance(value, bool):
                raise ParseError(raw, "time components must be integers")
        if not 0 <= self.hour <= 23:
            raise ParseError(raw, "hour out of range")
        if not 0 <= self.minute <= 59:  # type: ignore[operator]
            raise ParseError(raw, "minute out of range")

    @classmethod
    def from_storage_string(cls, value: str) -> CivilDateTime:
        """Parse "YYYY-MM-DD", "YYYY-MM-DD HH:MM" or "YYYY-MM-DDTHH:MM[:SS]".

        Seconds are accepted and dropped.

        Raises:
            ParseError: Malformed or out-of-range input.
        """
        if not isinstance(value, str):
            raise ParseError(value, "expected a date or date-time string")
        match = _STORAGE_DATETIME_RE.match(value.strip())
        if not match:
            raise ParseError(value, "expected YYYY-MM-DD or YYYY-MM-DD HH:MM")
        year, month, day, hour, minute, _second = match.groups()
        try:
            civil = CivilDate(int(year), int(month), int(day))
            if hour is None:
                return cls(civil)
            return cls(civil, int(hour), int(minute))
        except ParseError as err:
            raise ParseError(value, err.reason) from err

    @property
    def has_time(self) -> bool:
        """Return True when a time-of-day is attached."""
        return self.hour is not None

    def to_storage_string(self) -> str:
        """Return "YYYY-MM-DD" or "YYYY-MM-DD HH:MM"."""
        if not self.has_time:
            return self.civil_date.to_storage_string()
        return (
            f"{self.civil_date.to_storage_string()}{STORAGE_TIME_SEPARATOR}"
            f"{self.hour:02d}:{self.minute:02d}"
        )

    def __str__(self) -> str:
        return self.to_storage_string()

    def to_naive_datetime(self, end_of_day: bool = False) -> datetime:
        """Return a naive local datetime for ordering.

        A bare date becomes its start-of-day, or 23:59:59.999999 when
        `end_of_day` is set.
        """
        base = datetime.combine(self.civil_date.to_date(), datetime.min.time())
        if self.has_time:
            return base.replace(hour=self.hour, minute=self.minute)  # type: ignore[arg-type]
        if end_of_day:
            return base + timedelta(days=1, microseconds=-1)
        return base

    def with_date(self, civil_date: CivilDate) -> CivilDateTime:
        """Return a copy on another date, keeping the time-of-day."""
        return CivilDateTime(civil_date, self.hour, self.minute)

    def shift_days(self, days: int) -> CivilDateTime:
        """Move by whole days, keeping the time-of-day."""
        return self.with_date(self.civil_date.add_days(days))

    def compare(self, other: CivilDate | CivilDateTime) -> int:
        """Return -1, 0 or 1 by calendar order, ignoring time-of-day."""
        return self.civil_date.compare(other)


# ==============================================================================
# Current Date
# ==============================================================================


def today(tz: tzinfo | None = None) -> CivilDate:
    """Return the host's current local calendar date.

    This is the only function in the package that reads the clock.

    Args:
        tz: Optional zone override. Uses DEFAULT_TIME_ZONE, then host local.

    Example:
        CivilDate(2026, 2, 8)
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    now = datetime.now(tz_info) if tz_info is not None else datetime.now()
    return CivilDate.from_date(now)


def today_string(tz: tzinfo | None = None) -> str:
    """Return today's local date as "YYYY-MM-DD"."""
    return today(tz).to_storage_string()


# ==============================================================================
# Input Normalization
# ==============================================================================


def coerce_civil(value: CivilDate | CivilDateTime | date | str) -> CivilDateTime:
    """Normalize supported inputs to a CivilDateTime.

    Aware datetimes are converted to the default zone before the calendar
    fields are read; naive datetimes are taken as local already.

    Raises:
        ParseError: Malformed strings or unsupported types. Nothing is ever
            coerced to epoch or "now".
    """
    if isinstance(value, CivilDateTime):
        return value
    if isinstance(value, CivilDate):
        return CivilDateTime(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(DEFAULT_TIME_ZONE)
        return CivilDateTime(CivilDate.from_date(value), value.hour, value.minute)
    if isinstance(value, date):
        return CivilDateTime(CivilDate.from_date(value))
    if isinstance(value, str):
        return CivilDateTime.from_storage_string(value)
    raise ParseError(repr(value), "unsupported date type")


# ==============================================================================
# Comparison Helpers
# ==============================================================================


def is_same_calendar_day(
    a: CivilDate | CivilDateTime | date | str,
    b: CivilDate | CivilDateTime | date | str,
) -> bool:
    """Return True when both values fall on the same calendar day."""
    return coerce_civil(a).civil_date == coerce_civil(b).civil_date


def is_before_time_aware(
    a: CivilDate | CivilDateTime | date | str,
    b: CivilDate | CivilDateTime | date | str,
) -> bool:
    """Return True when `a` is strictly before `b`.

    Both timed: full date-time comparison. Both bare: calendar comparison.
    Exactly one bare: the bare date spans [00:00, 24:00), so as the left
    operand it counts from its start-of-day and as the right operand (an
    upper bound) it counts to its end-of-day. "Today 14:00" is therefore
    before bare "today".
    """
    left = coerce_civil(a)
    right = coerce_civil(b)
    if not left.has_time and not right.has_time:
        return left.civil_date < right.civil_date
    return left.to_naive_datetime() < right.to_naive_datetime(end_of_day=True)


def is_on_or_before(
    a: CivilDate | CivilDateTime | date | str,
    b: CivilDate | CivilDateTime | date | str,
) -> bool:
    """Return True when `a` is before or on the same calendar day as `b`.

    Both checks are needed: the time-aware check alone misses same-day pairs
    such as "today 15:00" against "today 14:00".
    """
    return is_before_time_aware(a, b) or is_same_calendar_day(a, b)


def is_on_or_after(
    a: CivilDate | CivilDateTime | date | str,
    b: CivilDate | CivilDateTime | date | str,
) -> bool:
    """Return True when `a` is after or on the same calendar day as `b`."""
    return is_on_or_before(b, a)
