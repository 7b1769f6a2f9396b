"""
Pure domain layer.

Value objects and abstractions with NO dependencies on the ORM, the
database or I/O (SystemClock is the one sanctioned time boundary).
"""

from findoc_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from findoc_kernel.domain.context import RequestContext
from findoc_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "RequestContext",
    "Guard",
    "Transition",
    "Workflow",
]
