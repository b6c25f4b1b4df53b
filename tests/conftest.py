"""Shared fixtures for task recurrence tests."""

from collections.abc import Iterator

import pytest

from task_recurrence.utils import dt_utils
from task_recurrence.utils.dt_utils import CivilDate


@pytest.fixture(autouse=True)
def reset_default_timezone() -> Iterator[None]:
    """Restore the host-local default zone after every test."""
    yield
    dt_utils.set_default_timezone(None)


@pytest.fixture
def today() -> CivilDate:
    """Return the fixed "today" used by scenario tests (a Sunday)."""
    return CivilDate(2026, 2, 8)
