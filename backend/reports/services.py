"""
Reports app Service Layer.

This module is the **single source of truth** for all business logic
in the ``reports`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``ReportQueryService``   — Permission-scoped querysets, single-report
                             lookup, audit trail and counter inspection.
- ``CaseWorkflowService``  — Every report mutation: state-machine
                             transitions, assignment (manual / automatic),
                             supervisor overrides, notes, comments,
                             evidence, priority, deletion and messages
                             to the assigned officer.

Execution model
---------------
Every mutation runs in two phases:

1. **Core** — inside ``transaction.atomic()`` with the report row locked
   (``lock_for_update``): apply the pure state-machine function, issue a
   blotter number if needed, save.  Any failure here aborts the whole
   operation; nothing is persisted.
2. **Effects** — after commit, each audit entry / notification
   descriptor returned by the state machine is executed in its own
   savepoint.  A failing effect becomes an ``EffectOutcome(ok=False)``
   in the returned ``WorkflowOutcome``; it never undoes the mutation.

Permission constants used here (from ``core.permissions_constants.ReportsPerms``):
  - CAN_VALIDATE_REPORT     → Desk Officer
  - CAN_ASSIGN_REPORT       → Desk Officer
  - CAN_HANDLE_ASSIGNMENT   → Officer (own assignments only)
  - CAN_SUPERVISE_REPORTS   → Supervisor
  - CAN_CHANGE_PRIORITY     → Desk Officer
  - CAN_COMMENT_ON_REPORT   → Desk Officer
  - CAN_ADD_OFFICER_NOTE    → Officer, Supervisor
  - CAN_ADD_EVIDENCE        → Officer, Supervisor
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from django.db import transaction
from django.db.models import Q, QuerySet

from accounts.services import OfficerService
from core.domain.access import apply_permission_scope, has_any_permission, require_permission
from core.domain.audit import (
    AuditService,
    DeletionDetails,
    EvidenceDetails,
    NoteDetails,
    PriorityChangeDetails,
)
from core.domain.deadlines import Deadline, check_deadline
from core.domain.effects import AUDIT, NOTIFY, AuditEffect, EffectOutcome, NotifyEffect
from core.domain.exceptions import Conflict, DomainError, MissingRequiredField, NotFound, PermissionDenied
from core.domain.feed import publish_on_commit
from core.domain.notifications import NotificationDispatcher
from core.domain.transactions import lock_for_update
from core.models import AuditAction, AuditTargetType
from core.permissions_constants import CorePerms, ReportsPerms, perm

from . import numbering, state_machine
from .assignment import pick_officer
from .models import (
    MediaKind,
    OfficerNote,
    Report,
    ReportComment,
    ReportEvidence,
    ReportPriority,
    ReportStatus,
)
from .state_machine import TransitionResult, snapshot

logger = logging.getLogger(__name__)

#: Sentinel accepted wherever an officer id is expected: let the picker choose.
AUTO = "auto"

#: Title used by ``notify_officer`` when the sender leaves it blank.
DEFAULT_OFFICER_MESSAGE_TITLE = "New Case Update"

_P = ReportsPerms.APP_LABEL


def _report_perm(codename: str) -> str:
    return perm(_P, codename)


# ═══════════════════════════════════════════════════════════════════
#  Scope rules
# ═══════════════════════════════════════════════════════════════════

#: Ordered broadest → narrowest; first match wins.
REPORT_SCOPE_RULES = [
    (_report_perm(ReportsPerms.CAN_SCOPE_ALL_REPORTS), lambda qs, u: qs),
    (
        _report_perm(ReportsPerms.CAN_SCOPE_ASSIGNED_REPORTS),
        lambda qs, u: qs.filter(Q(assigned_officer_id=u.pk) | Q(handled_by_id=u.pk)),
    ),
    (_report_perm(ReportsPerms.CAN_SCOPE_OWN_REPORTS), lambda qs, u: qs.filter(reporter=u)),
]


# ═══════════════════════════════════════════════════════════════════
#  Report Query Service
# ═══════════════════════════════════════════════════════════════════


class ReportQueryService:
    """Read-side helpers; every lookup is scoped to what the user may see."""

    FILTER_FIELDS = ("status", "priority", "triage_level", "jurisdiction_id", "category")

    @staticmethod
    def get_filtered_queryset(requesting_user: Any, filters: dict[str, Any] | None = None) -> QuerySet:
        """
        Build a permission-scoped, filtered queryset of ``Report`` objects.

        Parameters
        ----------
        requesting_user : User
            From ``request.user``.
        filters : dict
            Cleaned query parameters.  Supported keys: ``status``,
            ``priority``, ``triage_level``, ``jurisdiction_id``,
            ``category``, ``assigned_officer`` (officer pk) and
            ``unassigned`` (bool).

        Returns
        -------
        QuerySet[Report]
        """
        qs = apply_permission_scope(
            Report.objects.select_related("assigned_officer__user", "handled_by__user", "reporter"),
            requesting_user,
            scope_rules=REPORT_SCOPE_RULES,
        )
        filters = filters or {}
        for name in ReportQueryService.FILTER_FIELDS:
            value = filters.get(name)
            if value:
                qs = qs.filter(**{name: value})
        if filters.get("assigned_officer"):
            qs = qs.filter(assigned_officer_id=filters["assigned_officer"])
        if filters.get("unassigned"):
            qs = qs.filter(assigned_officer__isnull=True)
        return qs

    @staticmethod
    def get_report(report_id: Any, requesting_user: Any) -> Report:
        """Single report, or ``NotFound`` when it is absent or out of scope."""
        try:
            return ReportQueryService.get_filtered_queryset(requesting_user).get(pk=report_id)
        except (Report.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Report {report_id} not found.")

    @staticmethod
    def audit_trail(report_id: Any, requesting_user: Any) -> QuerySet:
        """Audit entries for a report, newest first.  Survives report deletion."""
        require_permission(
            requesting_user,
            perm(CorePerms.APP_LABEL, CorePerms.CAN_VIEW_AUDIT_LOG),
            message="You are not allowed to read the audit log.",
        )
        return AuditService.for_target(AuditTargetType.REPORT, report_id)

    @staticmethod
    def counter(period_key: str, requesting_user: Any) -> dict:
        require_permission(requesting_user, _report_perm(ReportsPerms.VIEW_BLOTTERCOUNTER))
        return numbering.current_counter(period_key)


# ═══════════════════════════════════════════════════════════════════
#  Case Workflow Service
# ═══════════════════════════════════════════════════════════════════


@dataclass
class WorkflowOutcome:
    """
    Result of a workflow operation.

    ``previous`` is the pre-mutation snapshot so callers holding an
    optimistic copy can roll it back; ``effects`` lists one outcome per
    audit entry / notification attempted after commit.
    """

    report: Report
    previous: dict
    effects: list[EffectOutcome] = field(default_factory=list)
    created: Any = None

    @property
    def warnings(self) -> list[EffectOutcome]:
        return [outcome for outcome in self.effects if not outcome.ok]


class CaseWorkflowService:
    """
    Orchestrates every mutation of a ``Report``.

    All methods are classmethods taking the report id and the acting
    user, plus an optional ``Deadline``.  The deadline is checked before
    the row lock, before commit, and before each notification; on expiry
    ``Timeout`` is raised (core phase) or reported as a failed effect
    (effects phase).
    """

    # ── Plumbing ────────────────────────────────────────────────────

    @classmethod
    def _execute(
        cls,
        report_id: Any,
        actor: Any,
        mutate: Callable[[Report], tuple[TransitionResult, Any]],
        *,
        deadline: Deadline | None = None,
        operation: str = "report update",
    ) -> WorkflowOutcome:
        with transaction.atomic():
            check_deadline(deadline, operation)
            report = lock_for_update(Report, report_id, label="Report")
            result, created = mutate(report)
            check_deadline(deadline, operation)
            changed = result.report is not report
            if changed:
                result.report.save()
                publish_on_commit("report", result.report.pk, {
                    "operation": operation,
                    "status": result.report.status,
                    "assigned_officer_id": result.report.assigned_officer_id,
                    "updated_at": result.report.updated_at.isoformat(),
                })

        if changed:
            logger.info(
                "Report %s: %s (%s -> %s) by user=%s",
                result.report.pk, operation, result.previous["status"],
                result.report.status, getattr(actor, "pk", None),
            )
        outcomes = cls._run_effects(actor, result.effects, deadline)
        return WorkflowOutcome(result.report, result.previous, outcomes, created)

    @classmethod
    def _run_effects(cls, actor: Any, effects, deadline: Deadline | None) -> list[EffectOutcome]:
        outcomes: list[EffectOutcome] = []
        for effect in effects:
            if effect.kind == AUDIT:
                outcome = AuditService.record(
                    actor, effect.action, effect.target_type, effect.target_id, effect.details,
                )
            else:
                outcome = cls._notify(effect, deadline)
                if outcome is None:
                    continue
            if not outcome.ok:
                logger.warning("After commit: %s", outcome.failure())
            outcomes.append(outcome)
        return outcomes

    @staticmethod
    def _notify(effect: NotifyEffect, deadline: Deadline | None) -> EffectOutcome | None:
        recipients = list(effect.recipient_ids)
        if effect.audience == "supervisors" and not recipients:
            recipients = list(OfficerService.active_supervisors().values_list("pk", flat=True))
        if not recipients:
            logger.info("No recipients for '%s' (%s); skipped", effect.title, effect.audience)
            return None

        batch = NotificationDispatcher.send_batch(
            recipients, effect.title, effect.body, effect.data, deadline=deadline,
        )
        info: dict[str, Any] = {"audience": effect.audience, "notification_ids": batch.delivered}
        if batch.failed:
            info["failed"] = batch.failed
        return EffectOutcome(
            effect=NOTIFY,
            ok=batch.ok,
            error="; ".join(f"{f['recipient_id']}: {f['error']}" for f in batch.failed) or None,
            info=info,
        )

    @staticmethod
    def _issuer(deadline: Deadline | None) -> Callable[[], str]:
        return lambda: numbering.next_number(deadline=deadline)

    @staticmethod
    def _choose_officer(report: Report, officer_id: Any):
        """Resolve ``officer_id`` (or ``AUTO``) to ``(officer, reason, auto)``."""
        if officer_id == AUTO:
            pool = list(OfficerService.assignment_pool())
            pick = pick_officer(report, pool)
            officer = next(o for o in pool if o.pk == pick.officer_id)
            return officer, pick.reason, True
        if officer_id in (None, ""):
            raise MissingRequiredField("officer_id")
        return OfficerService.get_officer(officer_id), "manual", False

    # ── Intake & assignment ─────────────────────────────────────────

    @classmethod
    def validate_report(
        cls,
        report_id: Any,
        actor: Any,
        triage_level: str | None,
        notes: str = "",
        officer_id: Any = None,
        *,
        deadline: Deadline | None = None,
    ) -> WorkflowOutcome:
        """
        ``pending → validated``, stamping a blotter number; when
        ``officer_id`` is given (or ``AUTO``) the report is assigned in
        the same transaction.

        Raises
        ------
        InvalidTransition, PermissionDenied, CounterContention,
        NoEligibleOfficers, NotFound, Timeout
            Nothing is persisted, including the counter increment.
        """
        def mutate(report):
            result = state_machine.transition(
                report, ReportStatus.VALIDATED, actor, notes,
                triage_level=triage_level,
                number_issuer=cls._issuer(deadline),
            )
            if officer_id not in (None, ""):
                validated = result.report
                state_machine.check_transition(validated, ReportStatus.ASSIGNED, actor)
                officer, reason, auto = cls._choose_officer(validated, officer_id)
                result = result.then(state_machine.transition(
                    validated, ReportStatus.ASSIGNED, actor,
                    officer=officer, assignment_reason=reason, auto=auto,
                ))
            return result, None

        return cls._execute(report_id, actor, mutate, deadline=deadline, operation="validate")

    @classmethod
    def assign_report(
        cls,
        report_id: Any,
        officer_id: Any,
        actor: Any,
        *,
        deadline: Deadline | None = None,
    ) -> WorkflowOutcome:
        """
        ``validated|unassigned → assigned``.  With ``officer_id == AUTO``
        the least-loaded eligible officer is picked and the audit entry is
        ``report_auto_assigned`` carrying the picker's reason.
        """
        def mutate(report):
            state_machine.check_transition(report, ReportStatus.ASSIGNED, actor)
            officer, reason, auto = cls._choose_officer(report, officer_id)
            return state_machine.transition(
                report, ReportStatus.ASSIGNED, actor,
                officer=officer, assignment_reason=reason, auto=auto,
            ), None

        return cls._execute(report_id, actor, mutate, deadline=deadline, operation="assign")

    @classmethod
    def change_status(
        cls,
        report_id: Any,
        new_status: str,
        actor: Any,
        notes: str = "",
        *,
        deadline: Deadline | None = None,
    ) -> WorkflowOutcome:
        """Generic transition; ``assigned`` needs ``assign_report`` for its officer."""
        if new_status not in ReportStatus.values:
            raise DomainError(f"Unknown report status '{new_status}'.")

        def mutate(report):
            return state_machine.transition(
                report, new_status, actor, notes,
                number_issuer=cls._issuer(deadline),
            ), None

        return cls._execute(report_id, actor, mutate, deadline=deadline, operation="status change")

    @classmethod
    def accept_assignment(cls, report_id: Any, actor: Any, *, deadline: Deadline | None = None) -> WorkflowOutcome:
        def mutate(report):
            return state_machine.transition(report, ReportStatus.ACCEPTED, actor), None

        return cls._execute(report_id, actor, mutate, deadline=deadline, operation="accept")

    @classmethod
    def decline_assignment(
        cls,
        report_id: Any,
        actor: Any,
        reason: str,
        *,
        deadline: Deadline | None = None,
    ) -> WorkflowOutcome:
        """Officer declines; the report returns to ``unassigned`` and supervisors are told."""
        def mutate(report):
            return state_machine.transition(report, ReportStatus.UNASSIGNED, actor, reason), None

        return cls._execute(report_id, actor, mutate, deadline=deadline, operation="decline")

    # ── Supervisor overrides ────────────────────────────────────────

    @classmethod
    def reassign(
        cls,
        report_id: Any,
        officer_id: Any,
        actor: Any,
        reason: str = "",
        *,
        deadline: Deadline | None = None,
    ) -> WorkflowOutcome:
        def mutate(report):
            officer, _, _ = cls._choose_officer(report, officer_id)
            return state_machine.reassign(report, officer, actor, reason), None

        return cls._execute(report_id, actor, mutate, deadline=deadline, operation="reassign")

    @classmethod
    def approve_closure(cls, report_id: Any, actor: Any, *, deadline: Deadline | None = None) -> WorkflowOutcome:
        def mutate(report):
            return state_machine.approve_closure(report, actor), None

        return cls._execute(report_id, actor, mutate, deadline=deadline, operation="approve closure")

    @classmethod
    def reject_closure(
        cls,
        report_id: Any,
        actor: Any,
        reason: str,
        *,
        deadline: Deadline | None = None,
    ) -> WorkflowOutcome:
        def mutate(report):
            return state_machine.reject_closure(report, actor, reason), None

        return cls._execute(report_id, actor, mutate, deadline=deadline, operation="reject closure")

    @classmethod
    def notify_officer(
        cls,
        report_id: Any,
        actor: Any,
        title: str,
        body: str,
        *,
        deadline: Deadline | None = None,
    ) -> EffectOutcome:
        """
        Send a free-form inbox message to the report's assigned officer.

        Nothing about the report changes and nothing is audited; the
        returned ``EffectOutcome`` says whether the message was queued.

        Raises
        ------
        PermissionDenied
            Actor can neither assign nor supervise reports.
        MissingRequiredField
            Blank ``body``.
        NotFound
            Report absent or outside the actor's scope.
        Conflict
            Nobody is assigned to the report.
        """
        require_permission(
            actor,
            _report_perm(ReportsPerms.CAN_ASSIGN_REPORT),
            _report_perm(ReportsPerms.CAN_SUPERVISE_REPORTS),
            message="You are not allowed to message officers about reports.",
        )
        body = (body or "").strip()
        if not body:
            raise MissingRequiredField("body")
        title = (title or "").strip() or DEFAULT_OFFICER_MESSAGE_TITLE

        check_deadline(deadline, "notify officer")
        report = ReportQueryService.get_report(report_id, actor)
        if report.assigned_officer_id is None:
            raise Conflict(f"Report {report.pk} has no assigned officer to notify.")

        effect = NotifyEffect(
            (report.assigned_officer_id,), title, body,
            data={"report_id": report.pk, "status": report.status},
            audience="officer",
        )
        outcome = cls._notify(effect, deadline)
        if not outcome.ok:
            logger.warning("Officer message: %s", outcome.failure())
        return outcome

    # ── Annotations ─────────────────────────────────────────────────

    @staticmethod
    def _require_involvement(report: Report, actor: Any) -> None:
        """Assignee, last handler, or a supervisor."""
        if actor.pk in (report.assigned_officer_id, report.handled_by_id):
            return
        if has_any_permission(actor, [_report_perm(ReportsPerms.CAN_SUPERVISE_REPORTS)]):
            return
        raise PermissionDenied("Only the officer on this report or a supervisor may do this.")

    @classmethod
    def add_officer_note(
        cls,
        report_id: Any,
        actor: Any,
        note: str,
        *,
        deadline: Deadline | None = None,
    ) -> WorkflowOutcome:
        """Attach a field note.  The audit entry records only its length."""
        require_permission(actor, _report_perm(ReportsPerms.CAN_ADD_OFFICER_NOTE))
        body = (note or "").strip()
        if not body:
            raise MissingRequiredField("note")

        def mutate(report):
            cls._require_involvement(report, actor)
            created = OfficerNote.objects.create(report=report, author=actor, body=body)
            effect = AuditEffect(
                AuditAction.OFFICER_NOTE_ADD, AuditTargetType.REPORT, str(report.pk),
                NoteDetails(author_id=actor.pk, length=len(body)),
            )
            return TransitionResult(report, snapshot(report), (effect,)), created

        return cls._execute(report_id, actor, mutate, deadline=deadline, operation="officer note")

    @classmethod
    def add_comment(
        cls,
        report_id: Any,
        actor: Any,
        comment: str,
        *,
        deadline: Deadline | None = None,
    ) -> WorkflowOutcome:
        require_permission(actor, _report_perm(ReportsPerms.CAN_COMMENT_ON_REPORT))
        body = (comment or "").strip()
        if not body:
            raise MissingRequiredField("comment")

        def mutate(report):
            created = ReportComment.objects.create(report=report, author=actor, body=body)
            effect = AuditEffect(
                AuditAction.REPORT_COMMENT_ADD, AuditTargetType.REPORT, str(report.pk),
                NoteDetails(author_id=actor.pk, length=len(body)),
            )
            return TransitionResult(report, snapshot(report), (effect,)), created

        return cls._execute(report_id, actor, mutate, deadline=deadline, operation="comment")

    @classmethod
    def add_evidence(
        cls,
        report_id: Any,
        actor: Any,
        media_url: str,
        media_kind: str,
        description: str = "",
        *,
        deadline: Deadline | None = None,
    ) -> WorkflowOutcome:
        """Record an evidence media reference; the URI itself is never audited."""
        require_permission(actor, _report_perm(ReportsPerms.CAN_ADD_EVIDENCE))
        if not (media_url or "").strip():
            raise MissingRequiredField("media_url")
        if media_kind not in MediaKind.values:
            raise DomainError(f"Unknown media kind '{media_kind}'.")

        def mutate(report):
            cls._require_involvement(report, actor)
            created = ReportEvidence.objects.create(
                report=report,
                uploaded_by=actor,
                media_url=media_url.strip(),
                media_kind=media_kind,
                description=description or "",
            )
            effect = AuditEffect(
                AuditAction.EVIDENCE_ADD, AuditTargetType.REPORT, str(report.pk),
                EvidenceDetails(evidence_id=created.pk, media_kind=media_kind),
            )
            return TransitionResult(report, snapshot(report), (effect,)), created

        return cls._execute(report_id, actor, mutate, deadline=deadline, operation="evidence")

    @classmethod
    def change_priority(
        cls,
        report_id: Any,
        new_priority: str,
        actor: Any,
        *,
        deadline: Deadline | None = None,
    ) -> WorkflowOutcome:
        """Set the report's priority.  Re-applying the current value is a no-op."""
        require_permission(actor, _report_perm(ReportsPerms.CAN_CHANGE_PRIORITY))
        if new_priority not in ReportPriority.values:
            raise DomainError(f"Unknown priority '{new_priority}'.")

        def mutate(report):
            previous = snapshot(report)
            if report.priority == new_priority:
                return TransitionResult(report, previous, ()), None
            updated = copy.copy(report)
            updated.priority = new_priority
            effect = AuditEffect(
                AuditAction.REPORT_PRIORITY_CHANGE, AuditTargetType.REPORT, str(report.pk),
                PriorityChangeDetails(old_priority=report.priority, new_priority=new_priority),
            )
            return TransitionResult(updated, previous, (effect,)), None

        return cls._execute(report_id, actor, mutate, deadline=deadline, operation="priority change")

    # ── Administrative override ─────────────────────────────────────

    @classmethod
    def delete_report(cls, report_id: Any, actor: Any, *, deadline: Deadline | None = None) -> WorkflowOutcome:
        """
        Hard-delete a report (admin override, outside the lifecycle).
        The ``report_deletion`` audit entry outlives the row.
        """
        require_permission(
            actor,
            _report_perm(ReportsPerms.DELETE_REPORT),
            message="Only administrators may delete reports.",
        )
        with transaction.atomic():
            check_deadline(deadline, "delete")
            report = lock_for_update(Report, report_id, label="Report")
            pk = report.pk
            previous = {"id": pk, **snapshot(report)}
            report.delete()

        logger.info("Report %s deleted by user=%s", pk, actor.pk)
        outcome = AuditService.record(
            actor,
            AuditAction.REPORT_DELETION,
            AuditTargetType.REPORT,
            pk,
            DeletionDetails(status=previous["status"], blotter_number=previous["blotter_number"] or ""),
        )
        if not outcome.ok:
            logger.warning("Effect %s failed after commit: %s", outcome.effect, outcome.error)
        return WorkflowOutcome(report, previous, [outcome])
