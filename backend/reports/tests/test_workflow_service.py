"""
Integration tests — ``CaseWorkflowService`` against the database.

Covers the lifecycle scenarios end to end (validation with numbering,
automatic assignment, decline, resolution), the two-phase execution
contract (core rollback vs. reported effect failures), idempotence of
repeated calls, and the annotation / priority / deletion operations.
"""

from __future__ import annotations

import itertools
import re
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase

from accounts.management.commands.setup_rbac import seed_roles
from accounts.models import Officer, OfficerRank, OfficerStatus, Role
from core.domain import feed
from core.domain.deadlines import Deadline
from core.domain.exceptions import (
    Conflict,
    DomainError,
    InvalidTransition,
    MissingRequiredField,
    NoEligibleOfficers,
    NotFound,
    PermissionDenied,
    Timeout,
)
from core.models import AuditAction, AuditLog, InboxNotification
from reports import numbering
from reports.models import (
    AssignmentStatus,
    BlotterCounter,
    OfficerNote,
    Report,
    ReportEvidence,
    ReportStatus,
)
from reports.services import AUTO, DEFAULT_OFFICER_MESSAGE_TITLE, CaseWorkflowService

User = get_user_model()

S = ReportStatus
BLOTTER_RE = re.compile(r"^\d{4}-\d{2}-\d{6}$")


def _audit_actions(report_id) -> list[str]:
    return list(
        AuditLog.objects
        .filter(target_type="report", target_id=str(report_id))
        .order_by("id")
        .values_list("action", flat=True)
    )


class WorkflowTestBase(TestCase):
    @classmethod
    def setUpTestData(cls):
        seed_roles()
        roles = {role.name: role for role in Role.objects.all()}

        def user(name: str, role: str) -> User:
            return User.objects.create_user(
                username=name,
                password="Wf!Pass1234",
                email=f"{name}@blotter.test",
                role=roles[role],
            )

        cls.admin = user("wf_admin", "System Admin")
        cls.desk = user("wf_desk", "Desk Officer")
        cls.citizen = user("wf_citizen", "Citizen")
        cls.supervisor = user("wf_supervisor", "Supervisor")
        cls.supervisor_profile = Officer.objects.create(user=cls.supervisor, rank=OfficerRank.SUPERVISOR)
        cls.officer_a = Officer.objects.create(user=user("wf_officer_a", "Officer"))
        cls.officer_b = Officer.objects.create(user=user("wf_officer_b", "Officer"))

    def make_report(self, **fields) -> Report:
        fields.setdefault("category", "Theft")
        fields.setdefault("reporter", self.citizen)
        return Report.objects.create(**fields)

    def give_open_reports(self, officer: Officer, count: int) -> None:
        for _ in range(count):
            self.make_report(
                status=S.ASSIGNED,
                assigned_officer=officer,
                assignment_status=AssignmentStatus.PENDING,
                blotter_number=numbering.next_number("2000-01"),
            )


class TestLifecycleScenarios(WorkflowTestBase):

    def test_validate_without_assignee(self):
        r1 = self.make_report()
        outcome = CaseWorkflowService.validate_report(r1.pk, self.desk, triage_level="high")

        r1.refresh_from_db()
        self.assertEqual(r1.status, S.VALIDATED)
        self.assertRegex(r1.blotter_number, BLOTTER_RE)
        self.assertEqual(r1.triage_level, "high")
        self.assertIsNone(r1.assigned_officer_id)
        self.assertEqual(_audit_actions(r1.pk), [AuditAction.REPORT_STATUS_CHANGE])
        self.assertEqual(outcome.previous["status"], S.PENDING)
        self.assertEqual(outcome.warnings, [])

    def test_validated_report_is_auto_assigned_to_least_loaded(self):
        self.give_open_reports(self.officer_a, 3)
        self.give_open_reports(self.officer_b, 1)
        r2 = self.make_report(status=S.VALIDATED, blotter_number="2025-10-000001")

        outcome = CaseWorkflowService.assign_report(r2.pk, AUTO, self.desk)

        r2.refresh_from_db()
        self.assertEqual(r2.assigned_officer_id, self.officer_b.pk)
        self.assertEqual(r2.status, S.ASSIGNED)
        self.assertEqual(r2.assignment_status, AssignmentStatus.PENDING)
        self.assertEqual(InboxNotification.objects.filter(recipient=self.officer_b.user).count(), 1)
        self.assertFalse(InboxNotification.objects.filter(recipient=self.officer_a.user).exists())
        self.assertEqual(_audit_actions(r2.pk), [AuditAction.REPORT_AUTO_ASSIGNED])
        self.assertTrue(all(effect.ok for effect in outcome.effects))

    def test_declined_assignment_returns_to_pool(self):
        r3 = self.make_report(
            status=S.ASSIGNED, blotter_number="2025-10-000002",
            assigned_officer=self.officer_a, assignment_status=AssignmentStatus.PENDING,
        )
        CaseWorkflowService.decline_assignment(r3.pk, self.officer_a.user, "wrong precinct")

        r3.refresh_from_db()
        self.assertEqual(r3.status, S.UNASSIGNED)
        self.assertIsNone(r3.assigned_officer_id)
        self.assertEqual(_audit_actions(r3.pk), [AuditAction.ASSIGNMENT_DECLINE])
        entry = AuditLog.objects.get(action=AuditAction.ASSIGNMENT_DECLINE, target_id=str(r3.pk))
        self.assertEqual(entry.details["assignment_status"], "declined")
        self.assertEqual(entry.details["reason_length"], len("wrong precinct"))

        alert = InboxNotification.objects.get(recipient=self.supervisor)
        self.assertEqual(alert.title, "Assignment Declined")
        self.assertIn("2025-10-000002", alert.body)

    def test_resolution_requires_notes_then_notifies_citizen(self):
        r4 = self.make_report(
            status=S.RESPONDING, blotter_number="2025-10-000003",
            assigned_officer=self.officer_a, assignment_status=AssignmentStatus.ACCEPTED,
        )
        with self.assertRaises(MissingRequiredField):
            CaseWorkflowService.change_status(r4.pk, S.RESOLVED, self.officer_a.user, "")
        r4.refresh_from_db()
        self.assertEqual(r4.status, S.RESPONDING)

        CaseWorkflowService.change_status(r4.pk, S.RESOLVED, self.officer_a.user, "closed, verified")
        r4.refresh_from_db()
        self.assertEqual(r4.status, S.RESOLVED)
        self.assertEqual(r4.handled_by_id, self.officer_a.pk)
        notice = InboxNotification.objects.get(recipient=self.citizen)
        self.assertEqual(notice.title, "Report Resolved")
        self.assertEqual(notice.data, {"report_id": r4.pk, "status": "resolved"})

    def test_full_lifecycle(self):
        report = self.make_report()
        officer = self.officer_a.user

        CaseWorkflowService.validate_report(report.pk, self.desk, "medium", officer_id=self.officer_a.pk)
        CaseWorkflowService.accept_assignment(report.pk, officer)
        CaseWorkflowService.change_status(report.pk, S.RESPONDING, officer)
        CaseWorkflowService.change_status(report.pk, S.RESOLVED, officer, "returned to owner")
        CaseWorkflowService.approve_closure(report.pk, self.supervisor)

        report.refresh_from_db()
        self.assertEqual(report.status, S.RESOLVED)
        self.assertTrue(report.closure_approved)
        self.assertEqual(
            _audit_actions(report.pk),
            [
                AuditAction.REPORT_STATUS_CHANGE,
                AuditAction.REPORT_ASSIGNED,
                AuditAction.ASSIGNMENT_ACCEPT,
                AuditAction.REPORT_STATUS_CHANGE,
                AuditAction.REPORT_STATUS_CHANGE,
                AuditAction.CLOSURE_APPROVE,
            ],
        )
        citizen_titles = list(
            InboxNotification.objects.filter(recipient=self.citizen).values_list("title", flat=True)
        )
        self.assertEqual(
            citizen_titles,
            ["Report Validated", "Officers Responding", "Report Resolved"],
        )


class TestExecutionContract(WorkflowTestBase):

    def test_repeated_status_change_is_rejected_without_side_effects(self):
        report = self.make_report(status=S.VALIDATED, blotter_number="2025-10-000010")
        audit_before = AuditLog.objects.count()
        inbox_before = InboxNotification.objects.count()

        for _ in range(2):
            with self.assertRaises(InvalidTransition):
                CaseWorkflowService.change_status(report.pk, S.VALIDATED, self.desk)

        self.assertEqual(AuditLog.objects.count(), audit_before)
        self.assertEqual(InboxNotification.objects.count(), inbox_before)

    def test_failed_assignment_rolls_back_blotter_number(self):
        Officer.objects.filter(rank=OfficerRank.OFFICER).update(status=OfficerStatus.INACTIVE)
        report = self.make_report()

        with self.assertRaises(NoEligibleOfficers):
            CaseWorkflowService.validate_report(report.pk, self.desk, "low", officer_id=AUTO)

        report.refresh_from_db()
        self.assertEqual(report.status, S.PENDING)
        self.assertIsNone(report.blotter_number)
        self.assertFalse(BlotterCounter.objects.filter(pk=numbering.period_key_for()).exists())
        self.assertEqual(_audit_actions(report.pk), [])

    def test_deadline_expiring_before_commit_persists_nothing(self):
        report = self.make_report()
        ticks = itertools.chain([0.0, 0.0], itertools.repeat(10.0))
        deadline = Deadline(expires_at=5.0, clock=lambda: next(ticks))

        with self.assertRaises(Timeout):
            CaseWorkflowService.validate_report(report.pk, self.desk, "high", deadline=deadline)

        report.refresh_from_db()
        self.assertEqual(report.status, S.PENDING)
        self.assertFalse(BlotterCounter.objects.exists())

    def test_notification_failure_is_reported_not_raised(self):
        report = self.make_report()
        with mock.patch(
            "core.domain.notifications.NotificationDispatcher.send",
            side_effect=RuntimeError("inbox unavailable"),
        ):
            outcome = CaseWorkflowService.validate_report(report.pk, self.desk, "high")

        report.refresh_from_db()
        self.assertEqual(report.status, S.VALIDATED)
        self.assertEqual(len(outcome.warnings), 1)
        self.assertEqual(outcome.warnings[0].effect, "notify")
        self.assertIn("inbox unavailable", outcome.warnings[0].error)
        self.assertEqual(_audit_actions(report.pk), [AuditAction.REPORT_STATUS_CHANGE])

    def test_committed_change_is_published_to_subscribers(self):
        report = self.make_report(
            status=S.ASSIGNED, blotter_number="2025-10-000011",
            assigned_officer=self.officer_a, assignment_status=AssignmentStatus.PENDING,
        )
        with feed.subscribe("report", report.pk) as updates:
            with self.captureOnCommitCallbacks(execute=True):
                CaseWorkflowService.accept_assignment(report.pk, self.officer_a.user)
            received = updates.drain()

        self.assertEqual(len(received), 1)
        self.assertEqual(received[0]["status"], S.ACCEPTED)
        self.assertEqual(received[0]["entity_id"], str(report.pk))

    def test_rejected_change_is_not_published(self):
        report = self.make_report()
        with feed.subscribe("report", report.pk) as updates:
            with self.captureOnCommitCallbacks(execute=True):
                with self.assertRaises(InvalidTransition):
                    CaseWorkflowService.accept_assignment(report.pk, self.officer_a.user)
            self.assertEqual(updates.drain(), [])

    def test_unknown_report(self):
        with self.assertRaises(NotFound):
            CaseWorkflowService.accept_assignment(987654, self.officer_a.user)

    def test_unknown_status(self):
        report = self.make_report()
        with self.assertRaises(DomainError):
            CaseWorkflowService.change_status(report.pk, "archived", self.desk)


class TestSupervisorOperations(WorkflowTestBase):

    def test_reassign_notifies_new_officer(self):
        report = self.make_report(
            status=S.ACCEPTED, blotter_number="2025-10-000020",
            assigned_officer=self.officer_a, assignment_status=AssignmentStatus.ACCEPTED,
        )
        CaseWorkflowService.reassign(report.pk, self.officer_b.pk, self.supervisor, "shift change")

        report.refresh_from_db()
        self.assertEqual(report.assigned_officer_id, self.officer_b.pk)
        self.assertEqual(report.assignment_status, AssignmentStatus.PENDING)
        entry = AuditLog.objects.get(action=AuditAction.SUPERVISOR_REASSIGN)
        self.assertEqual(entry.details["previous_officer_id"], self.officer_a.pk)
        self.assertTrue(InboxNotification.objects.filter(recipient=self.officer_b.user).exists())

    def test_reassign_reason_stays_out_of_audit(self):
        report = self.make_report(
            status=S.ACCEPTED, blotter_number="2025-10-000022",
            assigned_officer=self.officer_a, assignment_status=AssignmentStatus.ACCEPTED,
        )
        reason = "Officer A is the victim's brother-in-law, lives at 12 Elm St"
        CaseWorkflowService.reassign(report.pk, self.officer_b.pk, self.supervisor, reason)

        entry = AuditLog.objects.get(action=AuditAction.SUPERVISOR_REASSIGN)
        self.assertEqual(entry.details["reason_length"], len(reason))
        self.assertNotIn("brother-in-law", str(entry.details))
        self.assertNotIn("Elm St", str(entry.details))

    def test_reject_closure_sends_report_back(self):
        report = self.make_report(
            status=S.RESOLVED, blotter_number="2025-10-000021",
            handled_by=self.officer_a, resolution_notes="done",
        )
        CaseWorkflowService.reject_closure(report.pk, self.supervisor, "no photos attached")

        report.refresh_from_db()
        self.assertEqual(report.status, S.RESPONDING)
        self.assertEqual(report.assigned_officer_id, self.officer_a.pk)
        self.assertEqual(report.closure_rejection_reason, "no photos attached")
        self.assertEqual(report.closure_reviewer, self.supervisor)
        self.assertTrue(
            InboxNotification.objects.filter(recipient=self.officer_a.user, title="Closure Rejected").exists()
        )

    def test_reject_closure_skips_suspended_handler(self):
        Officer.objects.filter(pk=self.officer_a.pk).update(status=OfficerStatus.SUSPENDED)
        report = self.make_report(
            status=S.RESOLVED, blotter_number="2025-10-000023",
            handled_by=self.officer_a, resolution_notes="done",
        )
        outcome = CaseWorkflowService.reject_closure(report.pk, self.supervisor, "no photos attached")

        report.refresh_from_db()
        self.assertEqual(report.status, S.UNASSIGNED)
        self.assertIsNone(report.assigned_officer_id)
        self.assertEqual(report.handled_by_id, self.officer_a.pk)
        self.assertEqual(report.closure_rejection_reason, "no photos attached")

        entry = AuditLog.objects.get(action=AuditAction.CLOSURE_REJECT)
        self.assertEqual(entry.details["new_status"], S.UNASSIGNED)
        self.assertFalse(InboxNotification.objects.filter(recipient=self.officer_a.user).exists())
        self.assertTrue(
            InboxNotification.objects.filter(recipient=self.supervisor, title="Closure Rejected").exists()
        )
        self.assertEqual(outcome.warnings, [])


class TestOfficerMessages(WorkflowTestBase):

    def setUp(self):
        self.report = self.make_report(
            status=S.ACCEPTED, blotter_number="2025-10-000025",
            assigned_officer=self.officer_a, assignment_status=AssignmentStatus.ACCEPTED,
        )

    def test_message_reaches_assigned_officer(self):
        outcome = CaseWorkflowService.notify_officer(
            self.report.pk, self.supervisor, "Witness found", "Call the shop owner.",
        )

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.effect, "notify")
        message = InboxNotification.objects.get(recipient=self.officer_a.user)
        self.assertEqual(message.title, "Witness found")
        self.assertEqual(outcome.info["notification_ids"], [message.pk])
        self.assertEqual(_audit_actions(self.report.pk), [])

    def test_blank_title_uses_default(self):
        CaseWorkflowService.notify_officer(self.report.pk, self.desk, "  ", "Caller rang again.")
        message = InboxNotification.objects.get(recipient=self.officer_a.user)
        self.assertEqual(message.title, DEFAULT_OFFICER_MESSAGE_TITLE)

    def test_blank_body_is_rejected(self):
        with self.assertRaises(MissingRequiredField):
            CaseWorkflowService.notify_officer(self.report.pk, self.supervisor, "Hi", "")

    def test_needs_assign_or_supervise_permission(self):
        for actor in (self.citizen, self.officer_a.user):
            with self.subTest(actor=actor.username):
                with self.assertRaises(PermissionDenied):
                    CaseWorkflowService.notify_officer(self.report.pk, actor, "Hi", "hello")
        self.assertFalse(InboxNotification.objects.exists())

    def test_unassigned_report_is_conflict(self):
        report = self.make_report(status=S.VALIDATED, blotter_number="2025-10-000026")
        with self.assertRaises(Conflict):
            CaseWorkflowService.notify_officer(report.pk, self.supervisor, "Hi", "hello")

    def test_unknown_report(self):
        with self.assertRaises(NotFound):
            CaseWorkflowService.notify_officer(987654, self.supervisor, "Hi", "hello")

    def test_delivery_failure_is_returned(self):
        with mock.patch(
            "core.domain.notifications.NotificationDispatcher.send",
            side_effect=RuntimeError("inbox unavailable"),
        ):
            outcome = CaseWorkflowService.notify_officer(self.report.pk, self.supervisor, "Hi", "hello")

        self.assertFalse(outcome.ok)
        self.assertIn("inbox unavailable", outcome.error)


class TestAnnotations(WorkflowTestBase):

    def setUp(self):
        self.report = self.make_report(
            status=S.RESPONDING, blotter_number="2025-10-000030",
            assigned_officer=self.officer_a, assignment_status=AssignmentStatus.ACCEPTED,
        )

    def test_officer_note_keeps_body_out_of_audit(self):
        body = "Spoke with the neighbour; saw two people leave at 22:10."
        outcome = CaseWorkflowService.add_officer_note(self.report.pk, self.officer_a.user, body)

        self.assertIsInstance(outcome.created, OfficerNote)
        self.assertEqual(outcome.created.body, body)
        entry = AuditLog.objects.get(action=AuditAction.OFFICER_NOTE_ADD)
        self.assertEqual(entry.details["length"], len(body))
        self.assertNotIn(body, str(entry.details))

    def test_uninvolved_officer_cannot_add_note(self):
        with self.assertRaises(PermissionDenied):
            CaseWorkflowService.add_officer_note(self.report.pk, self.officer_b.user, "hello")
        self.assertFalse(OfficerNote.objects.exists())

    def test_blank_note_is_rejected(self):
        with self.assertRaises(MissingRequiredField):
            CaseWorkflowService.add_officer_note(self.report.pk, self.officer_a.user, "  ")

    def test_desk_comment(self):
        outcome = CaseWorkflowService.add_comment(self.report.pk, self.desk, "Caller phoned again.")
        self.assertEqual(outcome.created.author, self.desk)
        self.assertEqual(_audit_actions(self.report.pk), [AuditAction.REPORT_COMMENT_ADD])

    def test_evidence_reference(self):
        outcome = CaseWorkflowService.add_evidence(
            self.report.pk, self.officer_a.user, "s3://evidence/r30/photo1.jpg", "photo",
        )
        self.assertIsInstance(outcome.created, ReportEvidence)
        entry = AuditLog.objects.get(action=AuditAction.EVIDENCE_ADD)
        self.assertEqual(entry.details["media_kind"], "photo")
        self.assertNotIn("s3://", str(entry.details))

    def test_unknown_media_kind(self):
        with self.assertRaises(DomainError):
            CaseWorkflowService.add_evidence(self.report.pk, self.officer_a.user, "x://y", "hologram")

    def test_priority_change_and_repeat(self):
        CaseWorkflowService.change_priority(self.report.pk, "high", self.desk)
        repeat = CaseWorkflowService.change_priority(self.report.pk, "high", self.desk)

        self.report.refresh_from_db()
        self.assertEqual(self.report.priority, "high")
        self.assertEqual(repeat.effects, [])
        self.assertEqual(_audit_actions(self.report.pk), [AuditAction.REPORT_PRIORITY_CHANGE])

    def test_officer_cannot_change_priority(self):
        with self.assertRaises(PermissionDenied):
            CaseWorkflowService.change_priority(self.report.pk, "low", self.officer_a.user)


class TestDeletion(WorkflowTestBase):

    def test_admin_delete_leaves_audit_entry(self):
        report = self.make_report(status=S.VALIDATED, blotter_number="2025-10-000040")
        pk = report.pk
        CaseWorkflowService.delete_report(pk, self.admin)

        self.assertFalse(Report.objects.filter(pk=pk).exists())
        entry = AuditLog.objects.get(action=AuditAction.REPORT_DELETION, target_id=str(pk))
        self.assertEqual(entry.details["blotter_number"], "2025-10-000040")

    def test_desk_officer_cannot_delete(self):
        report = self.make_report()
        with self.assertRaises(PermissionDenied):
            CaseWorkflowService.delete_report(report.pk, self.desk)
        self.assertTrue(Report.objects.filter(pk=report.pk).exists())
