"""Manager modules for the task recurrence engine.

Managers apply user actions (skip, complete, revert) to task state and
delegate all date calculation to the engines.
"""

from .exception_manager import InstanceExceptionManager

__all__ = [
    "InstanceExceptionManager",
]
