"""
core.domain.deadlines — Caller-supplied time budgets.

Every workflow call accepts an optional ``Deadline``.  Long-running steps
(the counter retry loop, the report write, each notification send) call
``deadline.check()`` before touching storage; once the budget is spent
``Timeout`` is raised.  When raised inside the core ``atomic()`` block the
whole mutation rolls back.
"""

from __future__ import annotations

import time

from core.domain.exceptions import Timeout


class Deadline:
    """A monotonic-clock point in time after which work must stop."""

    __slots__ = ("_expires_at", "_clock")

    def __init__(self, expires_at: float, clock=time.monotonic) -> None:
        self._expires_at = expires_at
        self._clock = clock

    @classmethod
    def after(cls, seconds: float, clock=time.monotonic) -> "Deadline":
        return cls(clock() + seconds, clock)

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    def expired(self) -> bool:
        return self._clock() >= self._expires_at

    def check(self, operation: str = "operation") -> None:
        if self.expired():
            raise Timeout(f"Deadline expired during {operation}.")


def check_deadline(deadline: Deadline | None, operation: str = "operation") -> None:
    """``deadline.check`` that tolerates ``None`` (no budget)."""
    if deadline is not None:
        deadline.check(operation)
