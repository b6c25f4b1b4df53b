"""Tests for data_builders.py storage conversion and validation."""

import logging
from typing import Any

import pytest

from task_recurrence import const
from task_recurrence.data_builders import (
    build_task_state,
    serialize_task_state,
    validate_task_data,
)
from task_recurrence.engines.occurrence_engine import TaskRecurrenceState
from task_recurrence.engines.schedule_engine import parse_recurrence
from tests.helpers import d, dt


def task_data(**overrides: Any) -> dict[str, Any]:
    """Return a valid persisted task dict with overrides applied."""
    data: dict[str, Any] = {
        "title": "Water the plants",
        const.DATA_TASK_STATUS: "in-progress",
        const.DATA_TASK_RECURRENCE: "DTSTART:20260201T090000Z;FREQ=WEEKLY;BYDAY=MO,TH",
        const.DATA_TASK_RECURRENCE_ANCHOR: const.ANCHOR_MODE_SCHEDULED,
        const.DATA_TASK_SCHEDULED: "2026-02-09 09:00",
        const.DATA_TASK_DUE: "2026-02-10",
        const.DATA_TASK_COMPLETE_INSTANCES: ["2026-02-05", "2026-02-02"],
        const.DATA_TASK_SKIPPED_INSTANCES: [],
    }
    data.update(overrides)
    return data


class TestBuildTaskState:
    """Persisted dict → TaskRecurrenceState."""

    def test_valid_task(self) -> None:
        """Every field is converted."""
        state = build_task_state(task_data())

        assert state.status == "in-progress"
        assert state.recurrence == parse_recurrence(
            "DTSTART:20260201;FREQ=WEEKLY;BYDAY=MO,TH"
        )
        assert state.anchor_mode == const.ANCHOR_MODE_SCHEDULED
        assert state.scheduled == dt("2026-02-09 09:00")
        assert state.due == dt("2026-02-10")
        assert state.complete_instances == frozenset({d("2026-02-02"), d("2026-02-05")})
        assert state.skipped_instances == frozenset()
        assert state.is_recurring

    def test_defaults(self) -> None:
        """An empty dict is a non-recurring open task."""
        state = build_task_state({})
        assert state.status == const.DEFAULT_STATUS
        assert state.anchor_mode == const.DEFAULT_ANCHOR_MODE
        assert state.recurrence is None
        assert state.scheduled is None
        assert state.complete_instances == frozenset()

    def test_missing_dtstart_anchors_on_scheduled(self) -> None:
        """A descriptor without DTSTART uses the scheduled date."""
        state = build_task_state(
            task_data(**{const.DATA_TASK_RECURRENCE: "RRULE:FREQ=DAILY;INTERVAL=2"})
        )
        assert state.recurrence is not None
        assert state.recurrence.anchor == d("2026-02-09")

    def test_missing_dtstart_anchors_on_due(self) -> None:
        """Without scheduled, the due date anchors the rule."""
        state = build_task_state(
            task_data(
                **{
                    const.DATA_TASK_RECURRENCE: "FREQ=DAILY",
                    const.DATA_TASK_SCHEDULED: None,
                }
            )
        )
        assert state.recurrence is not None
        assert state.recurrence.anchor == d("2026-02-10")

    @pytest.mark.parametrize(
        "recurrence",
        [
            "DTSTART:20260201;FREQ=DAILY;COUNT=3",
            "DTSTART:20260201;FREQ=DAILY;INTERVAL=0",
            "garbage",
            42,
        ],
    )
    def test_bad_recurrence_downgrades_with_warning(
        self, recurrence: Any, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A bad descriptor makes the task non-recurring and logs a warning."""
        with caplog.at_level(logging.WARNING, logger=const.LOGGER.name):
            state = build_task_state(
                task_data(**{const.DATA_TASK_RECURRENCE: recurrence})
            )
        assert state.recurrence is None
        assert state.status == "in-progress"
        assert "non-recurring" in caplog.text

    def test_no_anchor_at_all_downgrades(self) -> None:
        """No DTSTART and no dates: nothing to anchor on."""
        state = build_task_state({const.DATA_TASK_RECURRENCE: "FREQ=DAILY"})
        assert state.recurrence is None

    def test_malformed_dates_dropped(self, caplog: pytest.LogCaptureFixture) -> None:
        """Bad scheduled/due values become absent."""
        with caplog.at_level(logging.WARNING, logger=const.LOGGER.name):
            state = build_task_state(
                task_data(**{const.DATA_TASK_DUE: "2026-02-31"})
            )
        assert state.due is None
        assert state.scheduled == dt("2026-02-09 09:00")
        assert "due" in caplog.text

    def test_malformed_instances_dropped(self) -> None:
        """Bad instance keys are dropped; timed keys keep their date."""
        state = build_task_state(
            task_data(
                **{
                    const.DATA_TASK_SKIPPED_INSTANCES: [
                        "2026-02-12",
                        "2026-02-16T09:00",
                        "not-a-date",
                        None,
                    ]
                }
            )
        )
        assert state.skipped_instances == frozenset({d("2026-02-12"), d("2026-02-16")})

    def test_single_string_instance_list(self) -> None:
        """A lone string is one date, not a list of characters."""
        state = build_task_state(
            task_data(**{const.DATA_TASK_COMPLETE_INSTANCES: "2026-02-05"})
        )
        assert state.complete_instances == frozenset({d("2026-02-05")})

    @pytest.mark.parametrize("value", [20260201, True, 3.5, {"2026-02-05": True}])
    def test_scalar_instance_list_dropped(
        self, value: Any, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Unquoted YAML scalars in an instance list never make a task unreadable."""
        with caplog.at_level(logging.WARNING, logger=const.LOGGER.name):
            state = build_task_state(
                task_data(**{const.DATA_TASK_COMPLETE_INSTANCES: value})
            )
        assert state.complete_instances == frozenset()
        assert state.is_recurring
        assert const.DATA_TASK_COMPLETE_INSTANCES in caplog.text

    def test_tuple_instance_list(self) -> None:
        """Tuples are read like lists."""
        state = build_task_state(
            task_data(**{const.DATA_TASK_SKIPPED_INSTANCES: ("2026-02-12",)})
        )
        assert state.skipped_instances == frozenset({d("2026-02-12")})

    def test_unknown_anchor_mode_defaults(self) -> None:
        """Unknown anchor modes fall back to scheduled."""
        state = build_task_state(
            task_data(**{const.DATA_TASK_RECURRENCE_ANCHOR: "whenever"})
        )
        assert state.anchor_mode == const.DEFAULT_ANCHOR_MODE


class TestValidateTaskData:
    """Strict validation with field messages."""

    def test_valid(self) -> None:
        """A valid task has no errors."""
        assert validate_task_data(task_data()) == {}

    def test_reports_each_field(self) -> None:
        """Each bad field is reported under its own key."""
        errors = validate_task_data(
            task_data(
                **{
                    const.DATA_TASK_SCHEDULED: "tomorrow",
                    const.DATA_TASK_RECURRENCE_ANCHOR: "whenever",
                    const.DATA_TASK_SKIPPED_INSTANCES: ["2026-02-30"],
                    const.DATA_TASK_RECURRENCE: "DTSTART:20260201;FREQ=DAILY;UNTIL=20260301",
                }
            )
        )
        assert set(errors) == {
            const.DATA_TASK_SCHEDULED,
            const.DATA_TASK_RECURRENCE_ANCHOR,
            const.DATA_TASK_SKIPPED_INSTANCES,
            const.DATA_TASK_RECURRENCE,
        }
        assert "UNTIL" in errors[const.DATA_TASK_RECURRENCE]

    def test_scalar_instance_list_reported(self) -> None:
        """A bare int where a list belongs is a field error, not a crash."""
        errors = validate_task_data(
            task_data(**{const.DATA_TASK_SKIPPED_INSTANCES: 20260201})
        )
        assert set(errors) == {const.DATA_TASK_SKIPPED_INSTANCES}

    def test_interval_message(self) -> None:
        """InvalidIntervalError details reach the caller."""
        errors = validate_task_data(
            task_data(**{const.DATA_TASK_RECURRENCE: "FREQ=WEEKLY;INTERVAL=-1"})
        )
        assert "interval" in errors[const.DATA_TASK_RECURRENCE].lower()


class TestSerializeTaskState:
    """TaskRecurrenceState → persisted dict."""

    def test_round_trip(self) -> None:
        """build → serialize → build is stable."""
        state = build_task_state(task_data())
        assert build_task_state(serialize_task_state(state)) == state

    def test_instance_lists_sorted(self) -> None:
        """Instance lists are written as sorted storage strings."""
        result = serialize_task_state(build_task_state(task_data()))
        assert result[const.DATA_TASK_COMPLETE_INSTANCES] == ["2026-02-02", "2026-02-05"]
        assert result[const.DATA_TASK_SKIPPED_INSTANCES] == []

    def test_base_keys_and_descriptor_preserved(self) -> None:
        """Unrelated keys and an equivalent stored descriptor are kept."""
        base = task_data()
        result = serialize_task_state(build_task_state(base), base)
        assert result["title"] == "Water the plants"
        assert result[const.DATA_TASK_RECURRENCE] == base[const.DATA_TASK_RECURRENCE]

    def test_missing_dtstart_is_pinned(self) -> None:
        """A descriptor without DTSTART is rewritten with its anchor."""
        base = task_data(**{const.DATA_TASK_RECURRENCE: "FREQ=DAILY;INTERVAL=2"})
        result = serialize_task_state(build_task_state(base), base)
        assert result[const.DATA_TASK_RECURRENCE] == (
            "DTSTART:20260209;FREQ=DAILY;INTERVAL=2"
        )

    def test_absent_fields_removed(self) -> None:
        """None dates and recurrence are dropped from the output."""
        base = task_data(**{const.DATA_TASK_RECURRENCE: "garbage"})
        state = build_task_state(base)
        result = serialize_task_state(TaskRecurrenceState(status=state.status), base)
        assert const.DATA_TASK_RECURRENCE not in result
        assert const.DATA_TASK_SCHEDULED not in result
        assert const.DATA_TASK_DUE not in result
        assert result[const.DATA_TASK_STATUS] == "in-progress"
