from __future__ import annotations

from core.subcount.models import Effect, Outcome


class CounterState:
    """
    Owner of the running non-Prime subcount.

    Only the dispatcher holds a reference and calls `apply`; nothing else
    mutates `subs`.
    """

    def __init__(self, subs: int = 0):
        self.subs = subs

    def apply(self, outcome: Outcome) -> Effect:
        # increment and overwrite are never both set by the classifier
        if outcome.increment:
            self.subs += outcome.increment_amount
            return Effect(write_subs=True)

        if outcome.overwrite:
            self.subs = outcome.overwrite_value
            return Effect(write_subs=True)

        return Effect()

    def __repr__(self) -> str:
        return f"CounterState(subs={self.subs})"
