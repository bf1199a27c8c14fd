"""
Subcount value types.

An Outcome is the classifier's verdict for one chat event; an Effect tells
the dispatcher whether the counter file has to be rewritten after the
outcome was applied. Both are transient and immutable.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Outcome:
    """
    How a single event changes the non-Prime subcount.

    At most one of `increment` / `overwrite` is set. Both unset is the
    no-op outcome.
    """

    increment: bool = False
    increment_amount: int = 0
    overwrite: bool = False
    overwrite_value: int = 0

    @classmethod
    def noop(cls) -> "Outcome":
        return cls()

    @classmethod
    def add(cls, amount: int = 1) -> "Outcome":
        return cls(increment=True, increment_amount=amount)

    @classmethod
    def set_to(cls, value: int) -> "Outcome":
        return cls(overwrite=True, overwrite_value=value)

    @property
    def is_noop(self) -> bool:
        return not (self.increment or self.overwrite)


@dataclass(frozen=True)
class Effect:
    """Side effect required after an Outcome was applied."""

    write_subs: bool = False
