"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside service layers
and the pure workflow modules (state machine, picker, numbering).  They are
deliberately **not** DRF exceptions so that the domain layer stays
framework-agnostic.  ``core.domain.exception_handler`` maps them to
responses.

Mapping cheatsheet
------------------
┌──────────────────────┬──────────────────────────────┬──────┐
│ Domain Exception     │ Meaning                      │ Code │
├──────────────────────┼──────────────────────────────┼──────┤
│ DomainError          │ generic business rule        │ 400  │
│ MissingRequiredField │ notes / reason absent        │ 400  │
│ PermissionDenied     │ actor lacks the permission   │ 403  │
│ NotFound             │ report / officer absent      │ 404  │
│ Conflict             │ clashes with current state   │ 409  │
│ InvalidTransition    │ edge not in the table        │ 409  │
│ NoEligibleOfficers   │ assignment pool is empty     │ 409  │
│ AppendOnlyViolation  │ audit row update/delete      │ 409  │
│ CounterContention    │ counter retries exhausted    │ 503  │
│ Timeout              │ caller deadline expired      │ 504  │
└──────────────────────┴──────────────────────────────┴──────┘

``EffectFailure`` is never raised out of the workflow service; it describes
the failed side effect behind an ``ok=False`` ``EffectOutcome``.

Core failures (anything raised before commit) mean the action did not take
effect and is safe to retry.  Effect failures mean the action took effect
but a downstream signal was lost.
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class MissingRequiredField(DomainError):
    """
    A field required by the requested transition was empty.

    ``field`` names the missing input (``notes``, ``reason``...).
    Maps to HTTP 400.
    """

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"'{field}' is required for this action.")


class PermissionDenied(DomainError):
    """
    The authenticated user does not have the required role or permission
    for this operation.

    Maps to HTTP 403.
    """

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)


class NotFound(DomainError):
    """
    The requested resource does not exist (or is not visible to the
    requesting user given their role scope).

    Maps to HTTP 404.
    """

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Maps to HTTP 409.
    """

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class InvalidTransition(Conflict):
    """
    A state-machine transition that is not allowed from the current status.

    Self-transitions are invalid too.  Maps to HTTP 409.

    Example::

        raise InvalidTransition(
            current="validated",
            target="resolved",
            reason="Report must be assigned first.",
        )
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Invalid state transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            message = " ".join(parts) + "."
            if reason:
                message = f"{message} {reason}"
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason


class NoEligibleOfficers(Conflict):
    """No active officer is available for assignment.  Maps to HTTP 409."""

    def __init__(self, message: str = "No eligible officers are available for assignment.") -> None:
        super().__init__(message)


class AppendOnlyViolation(Conflict):
    """An attempt was made to update or delete a write-once record."""


class CounterContention(DomainError):
    """
    The blotter counter transaction kept conflicting and the retry budget
    ran out.  Nothing was issued.  Maps to HTTP 503.
    """

    def __init__(self, period_key: str, attempts: int) -> None:
        self.period_key = period_key
        self.attempts = attempts
        super().__init__(
            f"Could not issue a blotter number for {period_key} "
            f"after {attempts} attempts."
        )


class Timeout(DomainError):
    """The caller-supplied deadline expired before commit.  Maps to HTTP 504."""

    def __init__(self, message: str = "The operation did not complete before its deadline.") -> None:
        super().__init__(message)


class EffectFailure(DomainError):
    """
    An audit write or notification failed after the core mutation
    committed.  Built by ``EffectOutcome.failure()``; not raised to callers.
    """

    def __init__(self, effect: str, cause: Exception | str) -> None:
        self.effect = effect
        self.cause = cause
        super().__init__(f"{effect} effect failed: {cause}")
