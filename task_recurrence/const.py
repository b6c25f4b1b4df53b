# File: const.py
"""Constants for the task recurrence engine.

This file centralizes frequency codes, anchor modes, status sentinels,
persisted data keys and calculation limits so every module reads the same
values.
"""

import logging

# ------------------------------------------------------------------------------------------------
# General
# ------------------------------------------------------------------------------------------------
# Package Name
DOMAIN = "task_recurrence"

# Logger
LOGGER = logging.getLogger(__package__)

# ------------------------------------------------------------------------------------------------
# Recurrence Frequencies (RFC 5545 FREQ values)
# ------------------------------------------------------------------------------------------------
FREQUENCY_DAILY = "DAILY"
FREQUENCY_WEEKLY = "WEEKLY"
FREQUENCY_MONTHLY = "MONTHLY"
FREQUENCY_YEARLY = "YEARLY"

FREQUENCY_OPTIONS = (
    FREQUENCY_DAILY,
    FREQUENCY_WEEKLY,
    FREQUENCY_MONTHLY,
    FREQUENCY_YEARLY,
)

# Constraints each frequency may carry (anything else is rejected at parse time)
FREQUENCY_ALLOWS_BY_DAY = frozenset(
    {FREQUENCY_DAILY, FREQUENCY_WEEKLY, FREQUENCY_MONTHLY}
)
FREQUENCY_ALLOWS_BY_MONTH_DAY = frozenset({FREQUENCY_MONTHLY})

DEFAULT_INTERVAL = 1

# ------------------------------------------------------------------------------------------------
# Recurrence Descriptor Keys
# ------------------------------------------------------------------------------------------------
RRULE_PREFIX = "RRULE:"
RRULE_DTSTART = "DTSTART"
RRULE_FREQ = "FREQ"
RRULE_INTERVAL = "INTERVAL"
RRULE_BYDAY = "BYDAY"
RRULE_BYMONTHDAY = "BYMONTHDAY"
RRULE_WKST = "WKST"
RRULE_EXDATE = "EXDATE"

# Bounded rules are out of scope: recurrence is open-ended going forward
RRULE_UNSUPPORTED_KEYS = frozenset(
    {
        "COUNT",
        "UNTIL",
        "BYSETPOS",
        "BYWEEKNO",
        "BYYEARDAY",
        "BYMONTH",
        "BYHOUR",
        "BYMINUTE",
        "BYSECOND",
    }
)

# Keys calendar services reject outright
CALENDAR_UNSUPPORTED_KEYS = ("BYSECOND", "BYMINUTE", "BYHOUR")

# ------------------------------------------------------------------------------------------------
# Weekdays (0=Monday ... 6=Sunday, matching datetime.date.weekday())
# ------------------------------------------------------------------------------------------------
WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")
WEEKDAY_INDEX = {code: index for index, code in enumerate(WEEKDAY_CODES)}
DEFAULT_WEEK_START = 0

# ------------------------------------------------------------------------------------------------
# Recurrence Anchor Modes
# ------------------------------------------------------------------------------------------------
ANCHOR_MODE_SCHEDULED = "scheduled"
ANCHOR_MODE_COMPLETION = "completion"
ANCHOR_MODE_OPTIONS = (ANCHOR_MODE_SCHEDULED, ANCHOR_MODE_COMPLETION)
DEFAULT_ANCHOR_MODE = ANCHOR_MODE_SCHEDULED

# ------------------------------------------------------------------------------------------------
# Task Status
# ------------------------------------------------------------------------------------------------
DEFAULT_STATUS = "open"
STATUS_DONE = "done"

# Per-occurrence states
INSTANCE_STATE_UNRESOLVED = "unresolved"
INSTANCE_STATE_COMPLETED = "completed"
INSTANCE_STATE_SKIPPED = "skipped"

# ------------------------------------------------------------------------------------------------
# Persisted Task Data Keys
# ------------------------------------------------------------------------------------------------
DATA_TASK_STATUS = "status"
DATA_TASK_RECURRENCE = "recurrence"
DATA_TASK_RECURRENCE_ANCHOR = "recurrence_anchor"
DATA_TASK_SCHEDULED = "scheduled"
DATA_TASK_DUE = "due"
DATA_TASK_COMPLETE_INSTANCES = "complete_instances"
DATA_TASK_SKIPPED_INSTANCES = "skipped_instances"

# ------------------------------------------------------------------------------------------------
# Date Format
# ------------------------------------------------------------------------------------------------
STORAGE_TIME_SEPARATOR = " "

# ------------------------------------------------------------------------------------------------
# Calculation Limits
# ------------------------------------------------------------------------------------------------
# Consecutive active periods without an occurrence before a rule is treated as
# exhausted (e.g. BYMONTHDAY=30 on a rule that only lands in February)
MAX_EMPTY_PERIODS = 48

# Safety limit for occurrence range generation
DEFAULT_OCCURRENCE_LIMIT = 100
