"""
Subcount package.

Classification of chat events, the counter they mutate, and the value
types passed between the two.
"""

from .classifier import (
    OVERWRITE_COMMAND,
    PRIME_PLAN,
    classify,
)
from .models import Effect, Outcome
from .state import CounterState

__all__ = [
    "OVERWRITE_COMMAND",
    "PRIME_PLAN",
    "classify",
    "CounterState",
    "Effect",
    "Outcome",
]
