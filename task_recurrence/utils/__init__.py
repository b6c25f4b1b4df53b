"""Pure Python utilities for the task recurrence engine.

This module contains leaf helpers with no imports from the rest of the
package, so every engine and manager can depend on it without cycles.

Submodules:
    - dt_utils: Civil date model, "today", timezone-safe comparisons

Usage:
    from . import dt_utils
    from .dt_utils import CivilDate, is_on_or_before
"""

from . import dt_utils

__all__ = ["dt_utils"]
