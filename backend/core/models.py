"""
Core app models.

Provides abstract base models plus the two append-style records that every
workflow operation emits as side effects: the ``AuditLog`` trail and the
per-recipient ``InboxNotification``.
"""

from django.conf import settings
from django.db import models

from core.domain.exceptions import AppendOnlyViolation
from core.permissions_constants import CorePerms


class TimeStampedModel(models.Model):
    """
    Abstract base model that provides self-updating ``created_at`` and
    ``updated_at`` timestamp fields for every concrete child model.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name="Created At",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name="Updated At",
    )

    class Meta:
        abstract = True


# ────────────────────────────────────────────────────────────────────
# Audit log
# ────────────────────────────────────────────────────────────────────

class AuditAction(models.TextChoices):
    """Closed vocabulary of audited actions."""

    REPORT_STATUS_CHANGE = "report_status_change", "Report Status Change"
    REPORT_PRIORITY_CHANGE = "report_priority_change", "Report Priority Change"
    REPORT_ASSIGNED = "report_assigned", "Report Assigned"
    REPORT_AUTO_ASSIGNED = "report_auto_assigned", "Report Auto-Assigned"
    REPORT_DELETION = "report_deletion", "Report Deletion"
    REPORT_COMMENT_ADD = "report_comment_add", "Report Comment Added"
    USER_ROLE_CHANGE = "user_role_change", "User Role Change"
    USER_STATUS_CHANGE = "user_status_change", "User Status Change"
    ADMIN_LOGIN = "admin_login", "Admin Login"
    ADMIN_LOGOUT = "admin_logout", "Admin Logout"
    ASSIGNMENT_ACCEPT = "assignment_accept", "Assignment Accepted"
    ASSIGNMENT_DECLINE = "assignment_decline", "Assignment Declined"
    SUPERVISOR_REASSIGN = "supervisor_reassign", "Supervisor Reassignment"
    CLOSURE_APPROVE = "closure_approve", "Closure Approved"
    CLOSURE_REJECT = "closure_reject", "Closure Rejected"
    EVIDENCE_ADD = "evidence_add", "Evidence Added"
    OFFICER_NOTE_ADD = "officer_note_add", "Officer Note Added"


class AuditTargetType(models.TextChoices):
    REPORT = "report", "Report"
    USER = "user", "User"
    SYSTEM = "system", "System"


class AppendOnlyQuerySet(models.QuerySet):
    """QuerySet that refuses bulk mutation of existing rows."""

    def update(self, **kwargs):
        raise AppendOnlyViolation(f"{self.model.__name__} rows cannot be updated.")

    def delete(self):
        raise AppendOnlyViolation(f"{self.model.__name__} rows cannot be deleted.")


class AuditLog(models.Model):
    """
    Append-only record of a mutating action.

    ``details`` holds a small, tagged structure produced by
    ``core.domain.audit``, never free-text note or comment bodies.
    Rows are written once; ``save`` on an existing row and ``delete``
    both raise ``AppendOnlyViolation``.
    """

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_entries",
        verbose_name="Actor",
    )
    actor_ref = models.CharField(
        max_length=64,
        verbose_name="Actor Reference",
        help_text="Actor id at the time of the action ('system' for automation).",
    )
    action = models.CharField(
        max_length=40,
        choices=AuditAction.choices,
        db_index=True,
        verbose_name="Action",
    )
    target_type = models.CharField(
        max_length=10,
        choices=AuditTargetType.choices,
        verbose_name="Target Type",
    )
    target_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        db_index=True,
        verbose_name="Target ID",
    )
    details = models.JSONField(
        default=dict,
        blank=True,
        verbose_name="Details",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        verbose_name="Recorded At",
    )

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        verbose_name = "Audit Log Entry"
        verbose_name_plural = "Audit Log"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["target_type", "target_id"]),
        ]
        default_permissions = ("add", "view")
        permissions = [
            (CorePerms.CAN_VIEW_AUDIT_LOG, "Can read the audit trail"),
        ]

    def __str__(self):
        return f"{self.action} by {self.actor_ref} on {self.target_type}:{self.target_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AppendOnlyViolation("Audit log entries cannot be modified.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise AppendOnlyViolation("Audit log entries cannot be deleted.")


# ────────────────────────────────────────────────────────────────────
# Inbox notifications
# ────────────────────────────────────────────────────────────────────

class InboxNotification(models.Model):
    """
    Message queued in a recipient's inbox.

    Created once by ``NotificationDispatcher.send``.  Afterwards only the
    ``delivered`` flag (flipped by the recipient's listener on receipt)
    and the ``seen`` flag (explicit acknowledgement) may change.  Rows
    older than the retention window are removed by ``purge_notifications``.
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="inbox",
        verbose_name="Recipient",
    )
    title = models.CharField(max_length=255, verbose_name="Title")
    body = models.TextField(verbose_name="Body")
    data = models.JSONField(default=dict, blank=True, verbose_name="Data Payload")
    delivered = models.BooleanField(default=False, verbose_name="Delivered")
    seen = models.BooleanField(default=False, verbose_name="Seen")
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        verbose_name="Queued At",
    )

    class Meta:
        verbose_name = "Inbox Notification"
        verbose_name_plural = "Inbox Notifications"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["recipient", "seen"]),
            models.Index(fields=["recipient", "delivered"]),
        ]

    def __str__(self):
        return f"[{self.recipient_id}] {self.title}"
