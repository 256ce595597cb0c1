"""
Ticket Bot Step Types

Built-in step types plus the contract extension step types implement.
"""

from .base import PENDING, Done, Pending, Rejected, StepContext, StepOutcome, StepType
from .boolean import BooleanStep
from .listing import ListStep
from .numeric import DoubleStep, IntegerStep
from .select import MultiSelectStep, SingleSelectStep
from .text import StringStep

BUILTIN_STEP_TYPES = (
    BooleanStep,
    IntegerStep,
    DoubleStep,
    StringStep,
    ListStep,
    SingleSelectStep,
    MultiSelectStep,
)

__all__ = [
    "PENDING",
    "Done",
    "Pending",
    "Rejected",
    "StepContext",
    "StepOutcome",
    "StepType",
    "BooleanStep",
    "IntegerStep",
    "DoubleStep",
    "StringStep",
    "ListStep",
    "SingleSelectStep",
    "MultiSelectStep",
    "BUILTIN_STEP_TYPES",
]
