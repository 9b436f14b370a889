"""
Unit tests — report status transitions (``reports.state_machine``).

The state machine never writes to the database; reports are stored
only so that foreign keys and permissions resolve like in production.
Each test checks that the caller's instance is left untouched and that
the right audit / notification effects are described.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase

from accounts.management.commands.setup_rbac import seed_roles
from accounts.models import Officer, OfficerRank, OfficerStatus, Role
from core.domain.effects import AUDIT, NOTIFY
from core.domain.exceptions import (
    Conflict,
    DomainError,
    InvalidTransition,
    MissingRequiredField,
    PermissionDenied,
)
from core.models import AuditAction
from reports import state_machine
from reports.models import AssignmentStatus, Report, ReportStatus

User = get_user_model()

S = ReportStatus


def _issuer(number: str = "2025-10-000001"):
    return lambda: number


class StateMachineTestBase(TestCase):
    @classmethod
    def setUpTestData(cls):
        seed_roles()
        roles = {role.name: role for role in Role.objects.all()}

        def user(name: str, role: str) -> User:
            return User.objects.create_user(
                username=name,
                password="Sm!Pass1234",
                email=f"{name}@blotter.test",
                role=roles[role],
            )

        cls.desk = user("sm_desk", "Desk Officer")
        cls.citizen = user("sm_citizen", "Citizen")
        cls.supervisor = user("sm_supervisor", "Supervisor")
        Officer.objects.create(user=cls.supervisor, rank=OfficerRank.SUPERVISOR)

        cls.officer_a = Officer.objects.create(user=user("sm_officer_a", "Officer"))
        cls.officer_b = Officer.objects.create(user=user("sm_officer_b", "Officer"))
        cls.off_duty = Officer.objects.create(
            user=user("sm_off_duty", "Officer"), status=OfficerStatus.INACTIVE,
        )

        cls.pending = Report.objects.create(category="Noise", reporter=cls.citizen)
        cls.validated = Report.objects.create(
            category="Vandalism", reporter=cls.citizen,
            status=S.VALIDATED, blotter_number="2025-09-000001",
        )
        cls.assigned = Report.objects.create(
            category="Theft", subcategory="Bicycle", reporter=cls.citizen,
            status=S.ASSIGNED, blotter_number="2025-09-000002",
            assigned_officer=cls.officer_a, assignment_status=AssignmentStatus.PENDING,
        )
        cls.accepted = Report.objects.create(
            category="Assault", reporter=cls.citizen,
            status=S.ACCEPTED, blotter_number="2025-09-000003",
            assigned_officer=cls.officer_a, assignment_status=AssignmentStatus.ACCEPTED,
        )
        cls.responding = Report.objects.create(
            category="Burglary", reporter=cls.citizen,
            status=S.RESPONDING, blotter_number="2025-09-000004",
            assigned_officer=cls.officer_a, assignment_status=AssignmentStatus.ACCEPTED,
        )
        cls.resolved = Report.objects.create(
            category="Fraud", reporter=cls.citizen,
            status=S.RESOLVED, blotter_number="2025-09-000005",
            handled_by=cls.officer_a, resolution_notes="Suspect identified.",
        )

    def assertUnchanged(self, report: Report, status: str):
        self.assertEqual(report.status, status)
        stored = Report.objects.get(pk=report.pk)
        self.assertEqual(stored.status, status)

    def actions(self, result) -> list[str]:
        return [effect.action for effect in result.effects if effect.kind == AUDIT]

    def notices(self, result) -> list:
        return [effect for effect in result.effects if effect.kind == NOTIFY]


class TestTransitionTable(StateMachineTestBase):

    def test_allowed_targets_from_pending(self):
        self.assertEqual(
            set(state_machine.allowed_targets(self.pending)),
            {S.VALIDATED, S.REJECTED},
        )

    def test_resolved_has_no_generic_targets(self):
        self.assertEqual(state_machine.allowed_targets(self.resolved), [])

    def test_closure_edges_are_not_generic(self):
        with self.assertRaises(InvalidTransition):
            state_machine.transition(self.resolved, S.UNASSIGNED, self.supervisor, "reopen")

    def test_unlisted_edge_is_rejected(self):
        with self.assertRaises(InvalidTransition):
            state_machine.transition(self.pending, S.RESOLVED, self.desk, "done")
        self.assertUnchanged(self.pending, S.PENDING)

    def test_self_transition_is_rejected(self):
        for report in (self.pending, self.validated, self.accepted):
            with self.subTest(status=report.status):
                with self.assertRaises(InvalidTransition):
                    state_machine.transition(report, report.status, self.supervisor, "again")

    def test_rejected_is_terminal(self):
        rejected = Report(pk=999, category="Spam", status=S.REJECTED)
        for target in S.values:
            with self.subTest(target=target):
                with self.assertRaises(InvalidTransition):
                    state_machine.check_transition(rejected, target, self.supervisor)

    def test_reopening_resolved_needs_closure_review(self):
        with self.assertRaises(InvalidTransition):
            state_machine.transition(self.resolved, S.RESPONDING, self.supervisor)

    def test_actor_without_permission_is_denied(self):
        with self.assertRaises(PermissionDenied):
            state_machine.transition(
                self.pending, S.VALIDATED, self.citizen, number_issuer=_issuer(),
            )
        self.assertUnchanged(self.pending, S.PENDING)


class TestValidate(StateMachineTestBase):

    def test_validate_stamps_number_and_triage(self):
        result = state_machine.transition(
            self.pending, S.VALIDATED, self.desk, "Looks genuine",
            triage_level="high", number_issuer=_issuer("2025-10-000042"),
        )
        self.assertEqual(result.report.status, S.VALIDATED)
        self.assertEqual(result.report.blotter_number, "2025-10-000042")
        self.assertEqual(result.report.triage_level, "high")
        self.assertEqual(result.report.triage_notes, "Looks genuine")
        self.assertIsNone(result.report.assigned_officer_id)

        self.assertEqual(self.pending.status, S.PENDING)
        self.assertIsNone(self.pending.blotter_number)
        self.assertEqual(result.previous["status"], S.PENDING)

        self.assertEqual(self.actions(result), [AuditAction.REPORT_STATUS_CHANGE])
        (notice,) = self.notices(result)
        self.assertEqual(notice.recipient_ids, (self.citizen.pk,))
        self.assertEqual(notice.title, "Report Validated")

    def test_validate_requires_issuer(self):
        with self.assertRaises(DomainError):
            state_machine.transition(self.pending, S.VALIDATED, self.desk)

    def test_malformed_number_aborts(self):
        with self.assertRaises(DomainError):
            state_machine.transition(
                self.pending, S.VALIDATED, self.desk, number_issuer=_issuer("10-2025-1"),
            )
        self.assertIsNone(self.pending.blotter_number)

    def test_unknown_triage_level_aborts(self):
        with self.assertRaises(DomainError):
            state_machine.transition(
                self.pending, S.VALIDATED, self.desk,
                triage_level="urgent", number_issuer=_issuer(),
            )

    def test_issuer_errors_propagate(self):
        def broken():
            raise DomainError("counter unavailable")

        with self.assertRaisesMessage(DomainError, "counter unavailable"):
            state_machine.transition(self.pending, S.VALIDATED, self.desk, number_issuer=broken)


class TestAssignment(StateMachineTestBase):

    def test_assign_sets_pending_assignment_and_notifies_officer(self):
        result = state_machine.transition(
            self.validated, S.ASSIGNED, self.desk,
            officer=self.officer_b, assignment_reason="manual",
        )
        self.assertEqual(result.report.status, S.ASSIGNED)
        self.assertEqual(result.report.assigned_officer_id, self.officer_b.pk)
        self.assertEqual(result.report.assignment_status, AssignmentStatus.PENDING)
        self.assertEqual(self.actions(result), [AuditAction.REPORT_ASSIGNED])

        (notice,) = self.notices(result)
        self.assertEqual(notice.recipient_ids, (self.officer_b.pk,))
        self.assertEqual(notice.body, "You have been assigned to: Vandalism")

    def test_auto_assignment_is_audited_separately(self):
        result = state_machine.transition(
            self.validated, S.ASSIGNED, self.desk,
            officer=self.officer_b, assignment_reason="open=0, lastUpdated=0", auto=True,
        )
        self.assertEqual(self.actions(result), [AuditAction.REPORT_AUTO_ASSIGNED])
        self.assertEqual(result.effects[0].details.reason, "open=0, lastUpdated=0")

    def test_assign_requires_officer(self):
        with self.assertRaises(MissingRequiredField) as ctx:
            state_machine.transition(self.validated, S.ASSIGNED, self.desk)
        self.assertEqual(ctx.exception.field, "officer_id")

    def test_assign_rejects_ineligible_officer(self):
        with self.assertRaises(Conflict):
            state_machine.transition(self.validated, S.ASSIGNED, self.desk, officer=self.off_duty)
        self.assertUnchanged(self.validated, S.VALIDATED)

    def test_accept_by_assignee(self):
        result = state_machine.transition(self.assigned, S.ACCEPTED, self.officer_a.user)
        self.assertEqual(result.report.assignment_status, AssignmentStatus.ACCEPTED)
        self.assertEqual(self.actions(result), [AuditAction.ASSIGNMENT_ACCEPT])
        self.assertEqual(self.notices(result), [])

    def test_accept_by_other_officer_is_denied(self):
        with self.assertRaises(PermissionDenied):
            state_machine.transition(self.assigned, S.ACCEPTED, self.officer_b.user)

    def test_decline_clears_assignment(self):
        result = state_machine.transition(
            self.assigned, S.UNASSIGNED, self.officer_a.user, "wrong precinct",
        )
        report = result.report
        self.assertEqual(report.status, S.UNASSIGNED)
        self.assertIsNone(report.assigned_officer_id)
        self.assertEqual(report.assignment_status, "")
        self.assertEqual(report.decline_reason, "wrong precinct")

        (audit,) = [e for e in result.effects if e.kind == AUDIT]
        self.assertEqual(audit.action, AuditAction.ASSIGNMENT_DECLINE)
        self.assertEqual(audit.details.assignment_status, AssignmentStatus.DECLINED)
        self.assertEqual(audit.details.officer_id, self.officer_a.pk)

        (notice,) = self.notices(result)
        self.assertEqual(notice.audience, "supervisors")
        self.assertEqual(notice.recipient_ids, ())

        self.assertEqual(self.assigned.assigned_officer_id, self.officer_a.pk)

    def test_decline_after_accepting(self):
        result = state_machine.transition(self.accepted, S.UNASSIGNED, self.officer_a.user, "injured")
        self.assertEqual(result.report.status, S.UNASSIGNED)

    def test_decline_requires_reason(self):
        with self.assertRaises(MissingRequiredField) as ctx:
            state_machine.transition(self.assigned, S.UNASSIGNED, self.officer_a.user, "   ")
        self.assertEqual(ctx.exception.field, "reason")

    def test_decline_with_mismatched_assignment_status(self):
        odd = Report(
            pk=1000, category="Theft", status=S.ASSIGNED,
            assigned_officer=self.officer_a, assignment_status=AssignmentStatus.ACCEPTED,
        )
        with self.assertRaises(InvalidTransition):
            state_machine.transition(odd, S.UNASSIGNED, self.officer_a.user, "no")


class TestClosing(StateMachineTestBase):

    def test_resolve_requires_notes(self):
        with self.assertRaises(MissingRequiredField) as ctx:
            state_machine.transition(self.responding, S.RESOLVED, self.officer_a.user, "")
        self.assertEqual(ctx.exception.field, "notes")
        self.assertUnchanged(self.responding, S.RESPONDING)

    def test_resolve_remembers_handler(self):
        result = state_machine.transition(
            self.responding, S.RESOLVED, self.officer_a.user, "closed, verified",
        )
        report = result.report
        self.assertEqual(report.status, S.RESOLVED)
        self.assertEqual(report.resolution_notes, "closed, verified")
        self.assertEqual(report.handled_by_id, self.officer_a.pk)
        self.assertIsNone(report.assigned_officer_id)
        self.assertIsNone(report.closure_approved)

        (notice,) = self.notices(result)
        self.assertEqual(notice.audience, "citizen")
        self.assertEqual(notice.title, "Report Resolved")

    def test_reject_pending_report(self):
        result = state_machine.transition(self.pending, S.REJECTED, self.desk, "duplicate")
        self.assertEqual(result.report.rejection_reason, "duplicate")
        self.assertIsNone(result.report.handled_by_id)
        self.assertEqual(self.notices(result)[0].title, "Report Needs Attention")

    def test_supervisor_may_move_foreign_assignment(self):
        result = state_machine.transition(self.accepted, S.RESPONDING, self.supervisor)
        self.assertEqual(result.report.status, S.RESPONDING)
        self.assertEqual(result.report.assigned_officer_id, self.officer_a.pk)


class TestSupervisorOverrides(StateMachineTestBase):

    def test_reassign_records_previous_officer(self):
        result = state_machine.reassign(self.accepted, self.officer_b, self.supervisor, "workload")
        self.assertEqual(result.report.status, S.ASSIGNED)
        self.assertEqual(result.report.assigned_officer_id, self.officer_b.pk)
        self.assertEqual(result.report.assignment_status, AssignmentStatus.PENDING)

        audit = result.effects[0]
        self.assertEqual(audit.action, AuditAction.SUPERVISOR_REASSIGN)
        self.assertEqual(audit.details.previous_officer_id, self.officer_a.pk)
        self.assertEqual(audit.details.reason, "")
        self.assertEqual(audit.details.reason_length, len("workload"))
        self.assertEqual(self.notices(result)[0].recipient_ids, (self.officer_b.pk,))

    def test_reassign_to_same_officer_is_rejected(self):
        with self.assertRaises(InvalidTransition):
            state_machine.reassign(self.accepted, self.officer_a, self.supervisor)

    def test_reassign_needs_supervisor(self):
        with self.assertRaises(PermissionDenied):
            state_machine.reassign(self.accepted, self.officer_b, self.desk)

    def test_reassign_closed_report_is_rejected(self):
        with self.assertRaises(InvalidTransition):
            state_machine.reassign(self.resolved, self.officer_b, self.supervisor)

    def test_approve_closure_once(self):
        result = state_machine.approve_closure(self.resolved, self.supervisor)
        self.assertTrue(result.report.closure_approved)
        self.assertEqual(result.report.closure_reviewer, self.supervisor)
        self.assertEqual(self.actions(result), [AuditAction.CLOSURE_APPROVE])

        with self.assertRaises(InvalidTransition):
            state_machine.approve_closure(result.report, self.supervisor)

    def test_reject_closure_returns_report_to_handler(self):
        result = state_machine.reject_closure(self.resolved, self.supervisor, "missing witness statement")
        report = result.report
        self.assertEqual(report.status, S.RESPONDING)
        self.assertEqual(report.assigned_officer_id, self.officer_a.pk)
        self.assertEqual(report.assignment_status, AssignmentStatus.ACCEPTED)
        self.assertIs(report.closure_approved, False)

        recipients = {notice.audience: notice.recipient_ids for notice in self.notices(result)}
        self.assertEqual(recipients["officer"], (self.officer_a.pk,))
        self.assertEqual(recipients["citizen"], (self.citizen.pk,))
        self.assertEqual(self.resolved.status, S.RESOLVED)

    def test_reject_closure_requires_reason(self):
        with self.assertRaises(MissingRequiredField):
            state_machine.reject_closure(self.resolved, self.supervisor, "")

    def test_closure_review_only_on_resolved(self):
        with self.assertRaises(InvalidTransition):
            state_machine.approve_closure(self.responding, self.supervisor)

    def test_reject_closure_with_suspended_handler_reopens_unassigned(self):
        suspended = Officer.objects.create(
            user=User.objects.create_user(
                username="sm_suspended", password="Sm!Pass1234",
                email="sm_suspended@blotter.test", role=Role.objects.get(name="Officer"),
            ),
            status=OfficerStatus.SUSPENDED,
        )
        report = Report.objects.create(
            category="Fraud", reporter=self.citizen,
            status=S.RESOLVED, blotter_number="2025-09-000006",
            handled_by=suspended, resolution_notes="Closed by suspended officer.",
        )

        result = state_machine.reject_closure(report, self.supervisor, "incomplete")
        self.assertEqual(result.report.status, S.UNASSIGNED)
        self.assertIsNone(result.report.assigned_officer_id)
        self.assertEqual(result.report.assignment_status, "")
        self.assertEqual(result.report.handled_by_id, suspended.pk)
        self.assertIs(result.report.closure_approved, False)

        audit = result.effects[0]
        self.assertEqual(audit.action, AuditAction.CLOSURE_REJECT)
        self.assertEqual(audit.details.new_status, S.UNASSIGNED)

        notices = self.notices(result)
        self.assertEqual([notice.audience for notice in notices], ["supervisors"])
        self.assertNotIn(suspended.pk, notices[0].recipient_ids)

    def test_reject_closure_checks_explicit_handler(self):
        result = state_machine.reject_closure(
            self.resolved, self.supervisor, "incomplete", handler=self.off_duty,
        )
        self.assertEqual(result.report.status, S.UNASSIGNED)
