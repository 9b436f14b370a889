"""
Reports app models.

Covers the incident report lifecycle: a citizen's report arrives
``pending``, a desk officer validates it (stamping a blotter number),
it is assigned to an officer who accepts, responds and resolves it,
and supervisors may reassign or review the closure.

Reports are mutated exclusively through ``reports.state_machine`` via
``reports.services.CaseWorkflowService``.
"""

from django.conf import settings
from django.db import models

from core.domain.exceptions import Conflict
from core.models import TimeStampedModel
from core.permissions_constants import ReportsPerms


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class ReportStatus(models.TextChoices):
    PENDING = "pending", "Pending Validation"
    VALIDATED = "validated", "Validated"
    ASSIGNED = "assigned", "Assigned"
    ACCEPTED = "accepted", "Accepted"
    RESPONDING = "responding", "Responding"
    RESOLVED = "resolved", "Resolved"
    REJECTED = "rejected", "Rejected"
    UNASSIGNED = "unassigned", "Unassigned"


# Statuses in which the report holds an assigned officer.
OPEN_STATUSES = frozenset({
    ReportStatus.ASSIGNED,
    ReportStatus.ACCEPTED,
    ReportStatus.RESPONDING,
})


class ReportPriority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"


class AssignmentStatus(models.TextChoices):
    """
    Officer's response to an assignment.  ``declined`` is never stored on
    the report (a decline clears the assignment); it appears only in the
    ``assignment_decline`` audit details.
    """

    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    DECLINED = "declined", "Declined"


class TriageLevel(models.TextChoices):
    CRITICAL = "critical", "Critical"
    HIGH = "high", "High"
    MEDIUM = "medium", "Medium"
    LOW = "low", "Low"


class MediaKind(models.TextChoices):
    PHOTO = "photo", "Photo"
    VIDEO = "video", "Video"
    AUDIO = "audio", "Audio"
    DOCUMENT = "document", "Document"


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Report(TimeStampedModel):
    """
    A citizen-filed incident report.

    Invariants
    ----------
    * ``blotter_number`` is set once the report reaches ``validated`` and
      never changes afterwards (``save`` refuses to overwrite it).
    * ``assigned_officer`` is set exactly while ``status`` is one of
      ``OPEN_STATUSES``.  ``handled_by`` remembers the last officer once
      the report is resolved or rejected out of an open status.
    """

    # ── Intake ──────────────────────────────────────────────────────
    category = models.CharField(max_length=100, verbose_name="Category")
    subcategory = models.CharField(max_length=100, blank=True, default="", verbose_name="Subcategory")
    description = models.TextField(blank=True, default="", verbose_name="Description")
    latitude = models.FloatField(null=True, blank=True, verbose_name="Latitude")
    longitude = models.FloatField(null=True, blank=True, verbose_name="Longitude")
    address = models.CharField(max_length=500, blank=True, default="", verbose_name="Address")
    media_urls = models.JSONField(
        default=list,
        blank=True,
        verbose_name="Media References",
        help_text="Opaque media URIs; never interpreted by the workflow.",
    )
    reporter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="filed_reports",
        verbose_name="Reporter",
    )
    jurisdiction_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        db_index=True,
        verbose_name="Jurisdiction",
    )

    # ── Workflow ────────────────────────────────────────────────────
    status = models.CharField(
        max_length=12,
        choices=ReportStatus.choices,
        default=ReportStatus.PENDING,
        db_index=True,
        verbose_name="Status",
    )
    priority = models.CharField(
        max_length=8,
        choices=ReportPriority.choices,
        default=ReportPriority.MEDIUM,
        verbose_name="Priority",
    )
    blotter_number = models.CharField(
        max_length=14,
        unique=True,
        null=True,
        blank=True,
        verbose_name="Blotter Number",
    )
    triage_level = models.CharField(
        max_length=8,
        choices=TriageLevel.choices,
        blank=True,
        default="",
        verbose_name="Triage Level",
    )
    triage_notes = models.TextField(blank=True, default="", verbose_name="Triage Notes")

    # ── Assignment ──────────────────────────────────────────────────
    assigned_officer = models.ForeignKey(
        "accounts.Officer",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_reports",
        verbose_name="Assigned Officer",
    )
    assignment_status = models.CharField(
        max_length=8,
        choices=AssignmentStatus.choices,
        blank=True,
        default="",
        verbose_name="Assignment Status",
    )
    handled_by = models.ForeignKey(
        "accounts.Officer",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="handled_reports",
        verbose_name="Handled By",
    )
    decline_reason = models.TextField(blank=True, default="", verbose_name="Last Decline Reason")

    # ── Outcome ─────────────────────────────────────────────────────
    resolution_notes = models.TextField(blank=True, default="", verbose_name="Resolution Notes")
    rejection_reason = models.TextField(blank=True, default="", verbose_name="Rejection Reason")

    # ── Supervisor closure review ───────────────────────────────────
    closure_approved = models.BooleanField(null=True, blank=True, verbose_name="Closure Approved")
    closure_reviewed_at = models.DateTimeField(null=True, blank=True, verbose_name="Closure Reviewed At")
    closure_reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviewed_closures",
        verbose_name="Closure Reviewer",
    )
    closure_rejection_reason = models.TextField(blank=True, default="", verbose_name="Closure Rejection Reason")

    class Meta:
        verbose_name = "Report"
        verbose_name_plural = "Reports"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["assigned_officer", "status"]),
            models.Index(fields=["status", "priority"]),
        ]
        permissions = [
            (ReportsPerms.CAN_VALIDATE_REPORT, "Can validate or reject incoming reports"),
            (ReportsPerms.CAN_ASSIGN_REPORT, "Can assign a report to an officer"),
            (ReportsPerms.CAN_HANDLE_ASSIGNMENT, "Can accept, decline and work own assignments"),
            (ReportsPerms.CAN_SUPERVISE_REPORTS, "Can reassign reports and review closures"),
            (ReportsPerms.CAN_CHANGE_PRIORITY, "Can change report priority"),
            (ReportsPerms.CAN_COMMENT_ON_REPORT, "Can comment on reports"),
            (ReportsPerms.CAN_ADD_OFFICER_NOTE, "Can add officer field notes"),
            (ReportsPerms.CAN_ADD_EVIDENCE, "Can attach evidence media"),
            (ReportsPerms.CAN_SCOPE_ALL_REPORTS, "Can see every report"),
            (ReportsPerms.CAN_SCOPE_ASSIGNED_REPORTS, "Can see reports assigned to self"),
            (ReportsPerms.CAN_SCOPE_OWN_REPORTS, "Can see own filed reports"),
        ]

    def __str__(self):
        return f"Report #{self.pk} [{self.status}] {self.title}"

    @property
    def title(self) -> str:
        if self.subcategory:
            return f"{self.category}: {self.subcategory}"
        return self.category

    @property
    def reference(self) -> str:
        """Human-facing identifier: the blotter number once issued."""
        return self.blotter_number or f"#{self.pk}"

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            stored = (
                type(self).objects
                .filter(pk=self.pk)
                .values_list("blotter_number", flat=True)
                .first()
            )
            if stored and stored != self.blotter_number:
                raise Conflict(f"Blotter number {stored} is immutable.")
        super().save(*args, **kwargs)


class BlotterCounter(models.Model):
    """
    Per-period sequence behind blotter numbers.

    ``period_key`` is ``YYYY-MM``.  Rows are only touched by
    ``reports.numbering.next_number`` under ``select_for_update``.
    """

    period_key = models.CharField(max_length=7, primary_key=True, verbose_name="Period")
    year = models.PositiveSmallIntegerField(verbose_name="Year")
    month = models.PositiveSmallIntegerField(verbose_name="Month")
    last_number = models.PositiveIntegerField(default=0, verbose_name="Last Issued Number")
    updated_at = models.DateTimeField(auto_now=True, verbose_name="Updated At")

    class Meta:
        verbose_name = "Blotter Counter"
        verbose_name_plural = "Blotter Counters"
        ordering = ["-period_key"]

    def __str__(self):
        return f"{self.period_key}: {self.last_number}"


class OfficerNote(models.Model):
    """Field note written by an officer on a report."""

    report = models.ForeignKey(Report, on_delete=models.CASCADE, related_name="officer_notes")
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="officer_notes",
    )
    body = models.TextField(verbose_name="Note")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Note on report #{self.report_id} by {self.author_id}"


class ReportComment(models.Model):
    """Administrative comment attached by a desk officer or supervisor."""

    report = models.ForeignKey(Report, on_delete=models.CASCADE, related_name="comments")
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="report_comments",
    )
    body = models.TextField(verbose_name="Comment")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Comment on report #{self.report_id} by {self.author_id}"


class ReportEvidence(models.Model):
    """Reference to evidence media collected while handling a report."""

    report = models.ForeignKey(Report, on_delete=models.CASCADE, related_name="evidence")
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="report_evidence",
    )
    media_url = models.CharField(max_length=1000, verbose_name="Media URI")
    media_kind = models.CharField(max_length=10, choices=MediaKind.choices, verbose_name="Media Kind")
    description = models.CharField(max_length=500, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Report Evidence"
        verbose_name_plural = "Report Evidence"
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.media_kind} on report #{self.report_id}"
