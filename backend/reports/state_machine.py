"""
reports.state_machine — Report status transitions.

Pure functions: nothing here writes to the database.  Each operation works
on a shallow copy of the report, leaves the caller's instance untouched,
and returns a ``TransitionResult`` holding the new value, a snapshot of
the previous one, and the audit / notification effects the caller must
execute after persisting.

Transition table::

    pending    -> validated, rejected
    validated  -> assigned, rejected
    assigned   -> accepted, unassigned (decline), rejected
    accepted   -> responding, unassigned (decline), rejected
    responding -> resolved, rejected
    unassigned -> assigned, rejected
    resolved   -> responding, unassigned (supervisor closure rejection only)
    rejected   -> (terminal)
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Callable

from django.utils import timezone

from core.domain.access import has_any_permission
from core.domain.audit import (
    AcceptDetails,
    AssignmentDetails,
    ClosureReviewDetails,
    DeclineDetails,
    StatusChangeDetails,
)
from core.domain.effects import AuditEffect, NotifyEffect
from core.domain.exceptions import (
    Conflict,
    DomainError,
    InvalidTransition,
    MissingRequiredField,
    PermissionDenied,
)
from core.domain.notifications import (
    assignment_message,
    citizen_status_message,
    closure_rejected_message,
    closure_unassigned_message,
    decline_message,
)
from core.models import AuditAction, AuditTargetType
from core.permissions_constants import ReportsPerms

from .assignment import is_eligible
from .models import AssignmentStatus, Report, ReportStatus, TriageLevel
from .numbering import is_well_formed

S = ReportStatus

_VALIDATE = ReportsPerms.CAN_VALIDATE_REPORT
_ASSIGN = ReportsPerms.CAN_ASSIGN_REPORT
_HANDLE = ReportsPerms.CAN_HANDLE_ASSIGNMENT
_SUPERVISE = ReportsPerms.CAN_SUPERVISE_REPORTS

#: Maps (from_status, to_status) → permission codenames allowed to make the
#: move (OR-logic).  ``can_handle_assignment`` only counts for the officer
#: currently assigned to the report.  Pairs not listed are illegal.
ALLOWED_TRANSITIONS: dict[tuple[str, str], set[str]] = {
    (S.PENDING, S.VALIDATED): {_VALIDATE},
    (S.PENDING, S.REJECTED): {_VALIDATE},
    (S.VALIDATED, S.ASSIGNED): {_ASSIGN},
    (S.VALIDATED, S.REJECTED): {_VALIDATE, _SUPERVISE},
    (S.ASSIGNED, S.ACCEPTED): {_HANDLE},
    (S.ASSIGNED, S.UNASSIGNED): {_HANDLE},
    (S.ASSIGNED, S.REJECTED): {_HANDLE, _SUPERVISE},
    (S.ACCEPTED, S.RESPONDING): {_HANDLE, _SUPERVISE},
    (S.ACCEPTED, S.UNASSIGNED): {_HANDLE},
    (S.ACCEPTED, S.REJECTED): {_HANDLE, _SUPERVISE},
    (S.RESPONDING, S.RESOLVED): {_HANDLE, _SUPERVISE},
    (S.RESPONDING, S.REJECTED): {_HANDLE, _SUPERVISE},
    (S.UNASSIGNED, S.ASSIGNED): {_ASSIGN},
    (S.UNASSIGNED, S.REJECTED): {_VALIDATE, _SUPERVISE},
    (S.RESOLVED, S.RESPONDING): {_SUPERVISE},
    (S.RESOLVED, S.UNASSIGNED): {_SUPERVISE},
}

#: Edges reachable only through a dedicated supervisor operation.
CLOSURE_ONLY_EDGES = frozenset({(S.RESOLVED, S.RESPONDING), (S.RESOLVED, S.UNASSIGNED)})

#: Assignment status a decline is valid from, keyed by report status.
_DECLINABLE = {
    S.ASSIGNED: AssignmentStatus.PENDING,
    S.ACCEPTED: AssignmentStatus.ACCEPTED,
}

#: Statuses from which a supervisor may hand the report to another officer.
REASSIGNABLE = frozenset({S.VALIDATED, S.ASSIGNED, S.ACCEPTED, S.RESPONDING, S.UNASSIGNED})

SNAPSHOT_FIELDS = (
    "status",
    "assignment_status",
    "assigned_officer_id",
    "handled_by_id",
    "blotter_number",
    "triage_level",
    "priority",
    "closure_approved",
)


@dataclass(frozen=True)
class TransitionResult:
    report: Report
    previous: dict
    effects: tuple = ()

    def then(self, other: "TransitionResult") -> "TransitionResult":
        """Chain a follow-up transition, keeping the first snapshot."""
        return TransitionResult(other.report, self.previous, self.effects + other.effects)


def snapshot(report: Report) -> dict:
    """Workflow-relevant field values, for callers that roll back speculative state."""
    data = {name: getattr(report, name) for name in SNAPSHOT_FIELDS}
    data["id"] = report.pk
    data["updated_at"] = report.updated_at.isoformat() if report.updated_at else None
    return data


def _perm(codename: str) -> str:
    return f"{ReportsPerms.APP_LABEL}.{codename}"


def _is_assignee(report: Report, actor) -> bool:
    return report.assigned_officer_id is not None and report.assigned_officer_id == actor.pk


def _require_supervisor(actor) -> None:
    if not has_any_permission(actor, [_perm(_SUPERVISE)]):
        raise PermissionDenied("Only supervisors may perform this action.")


def check_transition(report: Report, target_status: str, actor) -> tuple[str, str]:
    """
    Validate the edge and the actor's right to take it.

    Raises
    ------
    InvalidTransition
        Edge not in ``ALLOWED_TRANSITIONS`` (self-transitions included) or
        reserved for a supervisor operation.
    PermissionDenied
        Actor holds none of the edge's permissions, or holds only
        ``can_handle_assignment`` without being the assignee.
    """
    edge = (report.status, target_status)
    if edge not in ALLOWED_TRANSITIONS:
        raise InvalidTransition(current=report.status, target=target_status)
    if edge in CLOSURE_ONLY_EDGES:
        raise InvalidTransition(
            current=report.status,
            target=target_status,
            reason="Only a supervisor closure rejection can reopen a resolved report.",
        )

    allowed = ALLOWED_TRANSITIONS[edge]
    other_perms = [_perm(p) for p in allowed if p != _HANDLE]
    if has_any_permission(actor, other_perms):
        return edge
    if _HANDLE in allowed and has_any_permission(actor, [_perm(_HANDLE)]):
        if _is_assignee(report, actor):
            return edge
        raise PermissionDenied("Only the assigned officer may do this.")
    raise PermissionDenied(
        f"You are not allowed to move a report from '{edge[0]}' to '{edge[1]}'."
    )


# ────────────────────────────────────────────────────────────────────
# Effect builders
# ────────────────────────────────────────────────────────────────────

def _audit(report: Report, action: str, details) -> AuditEffect:
    return AuditEffect(action, AuditTargetType.REPORT, str(report.pk), details)


def _citizen_notice(report: Report, status: str) -> list[NotifyEffect]:
    message = citizen_status_message(status)
    if message is None or not report.reporter_id:
        return []
    title, body = message
    return [NotifyEffect(
        (report.reporter_id,), title, body,
        data={"report_id": report.pk, "status": status},
        audience="citizen",
    )]


def _officer_notice(report: Report, officer_id, message: tuple[str, str]) -> NotifyEffect:
    title, body = message
    return NotifyEffect(
        (officer_id,), title, body,
        data={"report_id": report.pk, "status": report.status},
        audience="officer",
    )


def _clear_assignment(report: Report) -> None:
    report.assigned_officer = None
    report.assignment_status = ""


# ────────────────────────────────────────────────────────────────────
# Generic transition
# ────────────────────────────────────────────────────────────────────

def transition(
    report: Report,
    target_status: str,
    actor,
    notes: str = "",
    *,
    officer=None,
    triage_level: str | None = None,
    number_issuer: Callable[[], str] | None = None,
    assignment_reason: str = "",
    auto: bool = False,
) -> TransitionResult:
    """
    Move ``report`` to ``target_status`` on behalf of ``actor``.

    Parameters
    ----------
    report : Report
        Current value; never modified.
    target_status : str
        A ``ReportStatus`` value.
    actor : User
        Acting user; permissions are checked against the edge.
    notes : str
        Resolution / rejection rationale, decline reason or triage notes.
        Required (non-blank) when entering ``resolved``, ``rejected`` or
        ``unassigned``.
    officer : Officer, optional
        Required when entering ``assigned``; must be eligible.
    triage_level : str, optional
        Recorded when entering ``validated``.
    number_issuer : callable, optional
        Returns a fresh blotter number; required for ``pending → validated``.
        Its exceptions propagate unchanged.
    assignment_reason, auto
        Picker reason and whether the officer was chosen automatically
        (audited as ``report_auto_assigned``).

    Returns
    -------
    TransitionResult
    """
    check_transition(report, target_status, actor)
    notes = (notes or "").strip()
    current = report.status

    if target_status in (S.RESOLVED, S.REJECTED) and not notes:
        raise MissingRequiredField("notes")

    updated = copy.copy(report)
    previous = snapshot(report)
    effects: list = []

    if target_status == S.VALIDATED:
        if triage_level and triage_level not in TriageLevel.values:
            raise DomainError(f"Unknown triage level '{triage_level}'.")
        if not updated.blotter_number:
            if number_issuer is None:
                raise DomainError("Validation requires a blotter number issuer.")
            number = number_issuer()
            if not is_well_formed(number):
                raise DomainError(f"Issued blotter number '{number}' is malformed.")
            updated.blotter_number = number
        if triage_level:
            updated.triage_level = triage_level
        if notes:
            updated.triage_notes = notes
        updated.status = target_status
        effects.append(_audit(updated, AuditAction.REPORT_STATUS_CHANGE, StatusChangeDetails(
            old_status=current,
            new_status=target_status,
            blotter_number=updated.blotter_number,
            triage_level=updated.triage_level,
            notes_length=len(notes),
        )))
        effects += _citizen_notice(updated, target_status)

    elif target_status == S.ASSIGNED:
        if officer is None:
            raise MissingRequiredField("officer_id")
        if not is_eligible(officer):
            raise Conflict(f"Officer {officer.pk} is not eligible for assignment.")
        updated.assigned_officer = officer
        updated.assignment_status = AssignmentStatus.PENDING
        updated.status = target_status
        action = AuditAction.REPORT_AUTO_ASSIGNED if auto else AuditAction.REPORT_ASSIGNED
        effects.append(_audit(updated, action, AssignmentDetails(
            officer_id=officer.pk,
            reason=assignment_reason,
            old_status=current,
            new_status=target_status,
        )))
        effects.append(_officer_notice(updated, officer.pk, assignment_message(report.title)))

    elif target_status == S.ACCEPTED:
        if report.assignment_status != AssignmentStatus.PENDING:
            raise InvalidTransition(
                current=current, target=target_status,
                reason="The assignment is not awaiting a response.",
            )
        updated.assignment_status = AssignmentStatus.ACCEPTED
        updated.status = target_status
        effects.append(_audit(updated, AuditAction.ASSIGNMENT_ACCEPT, AcceptDetails(
            officer_id=report.assigned_officer_id,
        )))

    elif target_status == S.UNASSIGNED:
        if report.assignment_status != _DECLINABLE.get(current):
            raise InvalidTransition(
                current=current, target=target_status,
                reason="The assignment cannot be declined in its current state.",
            )
        if not notes:
            raise MissingRequiredField("reason")
        officer_id = report.assigned_officer_id
        _clear_assignment(updated)
        updated.decline_reason = notes
        updated.status = target_status
        effects.append(_audit(updated, AuditAction.ASSIGNMENT_DECLINE, DeclineDetails(
            officer_id=officer_id,
            old_status=current,
            reason_length=len(notes),
        )))
        title, body = decline_message(report.reference)
        effects.append(NotifyEffect(
            (), title, body,
            data={"report_id": report.pk, "officer_id": officer_id},
            audience="supervisors",
        ))

    else:
        # responding, resolved, rejected
        if target_status == S.RESOLVED:
            updated.resolution_notes = notes
            updated.closure_approved = None
            updated.closure_reviewed_at = None
            updated.closure_reviewer = None
            updated.closure_rejection_reason = ""
        elif target_status == S.REJECTED:
            updated.rejection_reason = notes
        if target_status in (S.RESOLVED, S.REJECTED) and report.assigned_officer_id:
            updated.handled_by_id = report.assigned_officer_id
            _clear_assignment(updated)
        updated.status = target_status
        effects.append(_audit(updated, AuditAction.REPORT_STATUS_CHANGE, StatusChangeDetails(
            old_status=current,
            new_status=target_status,
            blotter_number=updated.blotter_number or "",
            notes_length=len(notes),
        )))
        effects += _citizen_notice(updated, target_status)

    return TransitionResult(updated, previous, tuple(effects))


# ────────────────────────────────────────────────────────────────────
# Supervisor overrides
# ────────────────────────────────────────────────────────────────────

def reassign(report: Report, officer, actor, reason: str = "") -> TransitionResult:
    """
    Hand the report to ``officer`` regardless of the current assignee.

    Allowed from ``validated``, ``assigned``, ``accepted``, ``responding``
    and ``unassigned``; the result is ``assigned`` with a pending
    assignment.  Reassigning to the current officer is rejected.
    """
    _require_supervisor(actor)
    if report.status not in REASSIGNABLE:
        raise InvalidTransition(
            current=report.status, target=S.ASSIGNED,
            reason="Reports can only be reassigned while validated or in progress.",
        )
    if officer is None:
        raise MissingRequiredField("officer_id")
    if officer.pk == report.assigned_officer_id:
        raise InvalidTransition(
            current=report.status, target=S.ASSIGNED,
            reason="The report is already assigned to this officer.",
        )
    if not is_eligible(officer):
        raise Conflict(f"Officer {officer.pk} is not eligible for assignment.")

    updated = copy.copy(report)
    updated.assigned_officer = officer
    updated.assignment_status = AssignmentStatus.PENDING
    updated.decline_reason = ""
    updated.status = S.ASSIGNED
    effects = (
        _audit(updated, AuditAction.SUPERVISOR_REASSIGN, AssignmentDetails(
            officer_id=officer.pk,
            previous_officer_id=report.assigned_officer_id,
            old_status=report.status,
            new_status=S.ASSIGNED,
            reason_length=len((reason or "").strip()),
        )),
        _officer_notice(updated, officer.pk, assignment_message(report.title)),
    )
    return TransitionResult(updated, snapshot(report), effects)


def approve_closure(report: Report, actor, *, now=None) -> TransitionResult:
    """Confirm a resolved report's closure.  Approving twice is rejected."""
    _require_supervisor(actor)
    if report.status != S.RESOLVED:
        raise InvalidTransition(
            current=report.status, target=S.RESOLVED,
            reason="Only resolved reports can have their closure approved.",
        )
    if report.closure_approved:
        raise InvalidTransition(
            current=report.status, target=S.RESOLVED,
            reason="Closure is already approved.",
        )

    updated = copy.copy(report)
    updated.closure_approved = True
    updated.closure_reviewed_at = now or timezone.now()
    updated.closure_reviewer = actor
    updated.closure_rejection_reason = ""
    effects = (
        _audit(updated, AuditAction.CLOSURE_APPROVE, ClosureReviewDetails(
            approved=True,
            officer_id=report.handled_by_id,
        )),
    )
    return TransitionResult(updated, snapshot(report), effects)


def reject_closure(report: Report, actor, reason: str, *, handler=None, now=None) -> TransitionResult:
    """
    Send a resolved report back to ``responding`` with the officer who
    handled it, recording the supervisor's reason.

    When that officer is no longer eligible (suspended, inactive or
    promoted) the report is reopened as ``unassigned`` instead and the
    supervisors are told so.  ``handler`` defaults to ``report.handled_by``.
    """
    _require_supervisor(actor)
    reason = (reason or "").strip()
    if report.status != S.RESOLVED:
        raise InvalidTransition(
            current=report.status, target=S.RESPONDING,
            reason="Only resolved reports can have their closure rejected.",
        )
    if not reason:
        raise MissingRequiredField("reason")
    if report.handled_by_id is None:
        raise InvalidTransition(
            current=report.status, target=S.RESPONDING,
            reason="No officer handled this report.",
        )
    if handler is None:
        handler = report.handled_by

    updated = copy.copy(report)
    updated.closure_approved = False
    updated.closure_reviewed_at = now or timezone.now()
    updated.closure_reviewer = actor
    updated.closure_rejection_reason = reason

    if is_eligible(handler):
        updated.status = S.RESPONDING
        updated.assigned_officer_id = report.handled_by_id
        updated.assignment_status = AssignmentStatus.ACCEPTED
    else:
        _clear_assignment(updated)
        updated.status = S.UNASSIGNED

    effects = [
        _audit(updated, AuditAction.CLOSURE_REJECT, ClosureReviewDetails(
            approved=False,
            officer_id=report.handled_by_id,
            reason_length=len(reason),
            new_status=updated.status,
        )),
    ]
    if updated.status == S.RESPONDING:
        effects.append(_officer_notice(updated, report.handled_by_id, closure_rejected_message(report.reference)))
        effects += _citizen_notice(updated, S.RESPONDING)
    else:
        title, body = closure_unassigned_message(report.reference)
        effects.append(NotifyEffect(
            (), title, body,
            data={"report_id": report.pk, "officer_id": report.handled_by_id},
            audience="supervisors",
        ))
    return TransitionResult(updated, snapshot(report), tuple(effects))


def allowed_targets(report: Report) -> list[str]:
    """Statuses reachable from the report's current status through ``transition``."""
    return [
        target for (source, target) in ALLOWED_TRANSITIONS
        if source == report.status and (source, target) not in CLOSURE_ONLY_EDGES
    ]
