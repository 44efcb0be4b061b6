"""
Pure domain layer.

Value objects with NO dependencies on the ORM, the database or I/O
(SystemClock aside).  All domain objects are immutable.
"""

from exit_kernel.domain.caller import CallerContext, Role
from exit_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from exit_kernel.domain.results import OperationResult
from exit_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "CallerContext",
    "Role",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "OperationResult",
    "Guard",
    "Transition",
    "Workflow",
]
