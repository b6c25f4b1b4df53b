"""Tests for the time-aware date comparison helpers.

The bare date "2026-02-08" spans [00:00, 24:00). Every hour of the day is
checked in both operand positions and against bare/timed neighbours, so a
regression in the end-of-day rule shows up as a specific hour.
"""

from zoneinfo import ZoneInfo

from freezegun import freeze_time
import pytest

from task_recurrence.utils import dt_utils
from task_recurrence.utils.dt_utils import (
    ParseError,
    is_before_time_aware,
    is_on_or_after,
    is_on_or_before,
    is_same_calendar_day,
)

HOURS = range(24)
TODAY = "2026-02-08"
YESTERDAY = "2026-02-07"
TOMORROW = "2026-02-09"


def timed(day: str, hour: int, minute: int = 0) -> str:
    """Return a "YYYY-MM-DD HH:MM" storage string."""
    return f"{day} {hour:02d}:{minute:02d}"


# =============================================================================
# Same-day matrix
# =============================================================================


class TestSameDayMatrix:
    """Timed and bare values on the same calendar day."""

    @pytest.mark.parametrize("hour", HOURS)
    def test_timed_is_on_or_before_bare_same_day(self, hour: int) -> None:
        """Any time today is on or before bare today (its end-of-day)."""
        assert is_on_or_before(timed(TODAY, hour), TODAY)
        assert is_on_or_before(timed(TODAY, hour, 59), TODAY)

    @pytest.mark.parametrize("hour", HOURS)
    def test_timed_is_strictly_before_bare_same_day(self, hour: int) -> None:
        """As an upper bound, a bare date reaches 23:59:59.999999."""
        assert is_before_time_aware(timed(TODAY, hour, 59), TODAY)

    @pytest.mark.parametrize("hour", HOURS)
    def test_bare_is_on_or_before_timed_same_day(self, hour: int) -> None:
        """Bare today is on or before any time today (same calendar day)."""
        assert is_on_or_before(TODAY, timed(TODAY, hour))

    @pytest.mark.parametrize("hour", HOURS)
    def test_bare_left_operand_uses_start_of_day(self, hour: int) -> None:
        """As the left operand, bare today starts at 00:00."""
        assert is_before_time_aware(TODAY, timed(TODAY, hour)) == (hour > 0)

    @pytest.mark.parametrize("hour", HOURS)
    def test_both_timed_same_day(self, hour: int) -> None:
        """Two times on one day are always on-or-before each other."""
        other = timed(TODAY, 14)
        assert is_on_or_before(timed(TODAY, hour), other)
        assert is_before_time_aware(timed(TODAY, hour), other) == (hour < 14)

    def test_later_time_still_on_or_before_earlier_time_same_day(self) -> None:
        """"Today 15:00" is on or before "today 14:00" by calendar day."""
        assert not is_before_time_aware(timed(TODAY, 15), timed(TODAY, 14))
        assert is_on_or_before(timed(TODAY, 15), timed(TODAY, 14))

    def test_both_bare(self) -> None:
        """Bare vs bare compares dates only."""
        assert is_on_or_before(TODAY, TODAY)
        assert not is_before_time_aware(TODAY, TODAY)
        assert is_before_time_aware(YESTERDAY, TODAY)


# =============================================================================
# Cross-day matrix
# =============================================================================


class TestCrossDayMatrix:
    """Timed and bare values on neighbouring days."""

    @pytest.mark.parametrize("hour", HOURS)
    def test_timed_today_not_on_or_before_bare_yesterday(self, hour: int) -> None:
        """Nothing today is on or before bare yesterday."""
        assert not is_on_or_before(timed(TODAY, hour), YESTERDAY)
        assert not is_before_time_aware(timed(TODAY, hour), YESTERDAY)

    @pytest.mark.parametrize("hour", HOURS)
    def test_timed_yesterday_before_bare_today(self, hour: int) -> None:
        """Any time yesterday is before bare today."""
        assert is_before_time_aware(timed(YESTERDAY, hour), TODAY)
        assert is_on_or_before(timed(YESTERDAY, hour), TODAY)

    @pytest.mark.parametrize("hour", HOURS)
    def test_bare_today_not_on_or_before_timed_yesterday(self, hour: int) -> None:
        """Bare today is after any time yesterday."""
        assert not is_on_or_before(TODAY, timed(YESTERDAY, hour))

    @pytest.mark.parametrize("hour", HOURS)
    def test_bare_today_before_timed_tomorrow(self, hour: int) -> None:
        """Bare today is before any time tomorrow."""
        assert is_before_time_aware(TODAY, timed(TOMORROW, hour))
        assert not is_on_or_before(timed(TOMORROW, hour), TODAY)

    @pytest.mark.parametrize("hour", HOURS)
    def test_on_or_after_mirrors_on_or_before(self, hour: int) -> None:
        """is_on_or_after(a, b) == is_on_or_before(b, a)."""
        for other in (TODAY, YESTERDAY, TOMORROW, timed(TODAY, 14)):
            value = timed(TODAY, hour)
            assert is_on_or_after(value, other) == is_on_or_before(other, value)


# =============================================================================
# Zone independence
# =============================================================================


class TestZoneIndependence:
    """Comparisons operate on civil values and ignore the configured zone."""

    @freeze_time("2026-02-08 23:30:00", tz_offset=0)
    @pytest.mark.parametrize(
        "zone", ["Pacific/Kiritimati", "UTC", "America/Los_Angeles", "Asia/Kolkata"]
    )
    def test_afternoon_task_on_or_before_local_today(self, zone: str) -> None:
        """"<today> 14:00" is on or before bare local today in every zone."""
        dt_utils.set_default_timezone(ZoneInfo(zone))
        local_today = dt_utils.today()
        assert is_on_or_before(timed(str(local_today), 14), local_today)
        assert is_before_time_aware(timed(str(local_today), 14), local_today)


class TestErrors:
    """Malformed input propagates ParseError."""

    @pytest.mark.parametrize("bad", ["2026-02-30", "02/08/2026", ""])
    def test_malformed_input_raises(self, bad: str) -> None:
        """Malformed strings never compare as epoch."""
        with pytest.raises(ParseError):
            is_on_or_before(bad, TODAY)
        with pytest.raises(ParseError):
            is_same_calendar_day(TODAY, bad)
