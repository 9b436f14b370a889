"""
core.domain.audit — Append-only audit trail writer.

Every mutating workflow action records one ``AuditLog`` row.  Recording is
best-effort: ``AuditService.record`` never raises, it logs the failure and
returns an ``EffectOutcome`` with ``ok=False`` so the caller can surface a
warning without unwinding the committed mutation.

Details are typed per action kind (a small tagged union of frozen
dataclasses).  ``to_details`` serialises them with a ``kind`` tag and
``validate_details`` rejects anything that is not a scalar or a shallow
container of scalars, or that carries long strings, so free-text note and
comment bodies cannot leak into the log.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, ClassVar

from core.constants import AUDIT_DETAILS_MAX_DEPTH, AUDIT_DETAILS_MAX_STRING
from core.domain.effects import AUDIT, EffectOutcome
from core.domain.exceptions import DomainError

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

_SCALARS = (str, int, float, bool, type(None))


# ────────────────────────────────────────────────────────────────────
# Details union
# ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StatusChangeDetails:
    kind: ClassVar[str] = "status_change"
    old_status: str
    new_status: str
    blotter_number: str = ""
    triage_level: str = ""
    notes_length: int = 0


@dataclass(frozen=True)
class AssignmentDetails:
    kind: ClassVar[str] = "assignment"
    officer_id: Any
    reason: str = ""
    previous_officer_id: Any = None
    old_status: str = ""
    new_status: str = ""
    reason_length: int = 0


@dataclass(frozen=True)
class AcceptDetails:
    kind: ClassVar[str] = "accept"
    officer_id: Any
    assignment_status: str = "accepted"


@dataclass(frozen=True)
class DeclineDetails:
    kind: ClassVar[str] = "decline"
    officer_id: Any
    old_status: str
    reason_length: int
    assignment_status: str = "declined"


@dataclass(frozen=True)
class ClosureReviewDetails:
    kind: ClassVar[str] = "closure_review"
    approved: bool
    officer_id: Any = None
    reason_length: int = 0
    new_status: str = ""


@dataclass(frozen=True)
class NoteDetails:
    kind: ClassVar[str] = "note"
    author_id: Any
    length: int


@dataclass(frozen=True)
class PriorityChangeDetails:
    kind: ClassVar[str] = "priority_change"
    old_priority: str
    new_priority: str


@dataclass(frozen=True)
class EvidenceDetails:
    kind: ClassVar[str] = "evidence"
    evidence_id: Any
    media_kind: str


@dataclass(frozen=True)
class DeletionDetails:
    kind: ClassVar[str] = "deletion"
    status: str
    blotter_number: str = ""


@dataclass(frozen=True)
class RoleChangeDetails:
    kind: ClassVar[str] = "role_change"
    old_role: str
    new_role: str


@dataclass(frozen=True)
class AccountStatusDetails:
    kind: ClassVar[str] = "account_status"
    old_status: str
    new_status: str


@dataclass(frozen=True)
class SessionDetails:
    kind: ClassVar[str] = "session"
    username: str
    role: str = ""


# ────────────────────────────────────────────────────────────────────
# Serialisation & validation
# ────────────────────────────────────────────────────────────────────

def validate_details(value: Any, *, _depth: int = 0) -> None:
    """
    Raise ``DomainError`` unless ``value`` is a scalar or a container of
    scalars nested at most ``AUDIT_DETAILS_MAX_DEPTH`` levels deep, with
    every string no longer than ``AUDIT_DETAILS_MAX_STRING`` characters.
    """
    if isinstance(value, str):
        if len(value) > AUDIT_DETAILS_MAX_STRING:
            raise DomainError(
                f"Audit detail strings are limited to {AUDIT_DETAILS_MAX_STRING} characters."
            )
        return
    if isinstance(value, _SCALARS):
        return
    if isinstance(value, (dict, list, tuple)):
        if _depth >= AUDIT_DETAILS_MAX_DEPTH:
            raise DomainError("Audit details are nested too deeply.")
        if isinstance(value, dict):
            for key, item in value.items():
                if not isinstance(key, str):
                    raise DomainError("Audit detail keys must be strings.")
                validate_details(item, _depth=_depth + 1)
        else:
            for item in value:
                validate_details(item, _depth=_depth + 1)
        return
    raise DomainError(f"Unsupported audit detail value of type {type(value).__name__}.")


def to_details(details: Any) -> dict:
    """Convert a details dataclass (or plain mapping) to a validated dict."""
    if details is None:
        payload: dict = {}
    elif dataclasses.is_dataclass(details):
        payload = {"kind": details.kind, **dataclasses.asdict(details)}
    elif isinstance(details, dict):
        payload = dict(details)
    else:
        raise DomainError(f"Unsupported audit details type {type(details).__name__}.")
    validate_details(payload)
    return payload


def actor_ref(actor) -> str:
    if actor is None or not getattr(actor, "pk", None):
        return SYSTEM_ACTOR
    return str(actor.pk)


# ────────────────────────────────────────────────────────────────────
# Service
# ────────────────────────────────────────────────────────────────────

class AuditService:
    """Writes and reads the append-only audit trail."""

    @staticmethod
    def record(
        actor,
        action: str,
        target_type: str,
        target_id: Any = "",
        details: Any = None,
    ) -> EffectOutcome:
        """
        Append one audit entry.

        Parameters
        ----------
        actor : User | None
            Acting user; ``None`` for system-initiated actions.
        action : str
            One of ``core.models.AuditAction``.
        target_type : str
            One of ``core.models.AuditTargetType``.
        target_id : Any
            Identifier of the target; stored as a string.
        details : dataclass | dict | None
            Typed details (see the ``*Details`` classes above).

        Returns
        -------
        EffectOutcome
            ``ok=False`` with the error message when the write failed.
            Never raises.
        """
        from core.models import AuditAction, AuditLog
        from core.domain.transactions import run_in_atomic

        try:
            if action not in AuditAction.values:
                raise DomainError(f"Unknown audit action '{action}'.")
            payload = to_details(details)
            entry = run_in_atomic(
                AuditLog.objects.create,
                actor=actor if actor_ref(actor) != SYSTEM_ACTOR else None,
                actor_ref=actor_ref(actor),
                action=action,
                target_type=target_type,
                target_id=str(target_id) if target_id is not None else "",
                details=payload,
            )
        except Exception as exc:
            logger.warning(
                "Audit write failed for %s on %s:%s: %s",
                action, target_type, target_id, exc,
                exc_info=True,
            )
            return EffectOutcome(effect=AUDIT, ok=False, error=str(exc))

        logger.info(
            "Audit %s by %s on %s:%s (entry %s)",
            action, entry.actor_ref, target_type, target_id, entry.pk,
        )
        return EffectOutcome(effect=AUDIT, ok=True, info={"entry_id": entry.pk})

    @staticmethod
    def for_target(target_type: str, target_id: Any):
        """Entries for one target, newest first."""
        from core.models import AuditLog

        return (
            AuditLog.objects
            .filter(target_type=target_type, target_id=str(target_id))
            .select_related("actor")
        )
