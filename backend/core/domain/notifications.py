"""
core.domain.notifications — Inbox notification dispatcher.

Centralises notification creation so every app uses one consistent
entry-point rather than directly constructing ``InboxNotification``
objects.

Design decisions
----------------
* **Durably queued, not seen** — ``send`` returning an id means the row
  exists in the recipient's inbox.  The recipient's listener flips
  ``delivered``; an explicit acknowledgement flips ``seen``.
* **Per-recipient independence** — ``send_batch`` applies ``send`` to
  each recipient in its own savepoint.  Partial failure is reported per
  item in ``BatchResult.failed``; successful sends are never undone.
* **Ordering** — rows for the same recipient keep creation order
  (``created_at``, ``id``); nothing is promised across recipients.

Usage::

    from core.domain.notifications import NotificationDispatcher

    title, body = assignment_message(report.category)
    NotificationDispatcher.send(
        officer.user_id, title, body, data={"report_id": report.pk},
    )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Iterable

from django.utils import timezone

from core.domain.deadlines import Deadline, check_deadline
from core.domain.exceptions import NotFound
from core.domain.transactions import run_in_atomic

if TYPE_CHECKING:
    from core.models import InboxNotification

logger = logging.getLogger(__name__)

# ── Message templates ───────────────────────────────────────────────
# Citizen-visible report statuses and the message sent on entering them.
_CITIZEN_STATUS_TEMPLATES: dict[str, tuple[str, str]] = {
    "validated":  ("Report Validated", "Your report has been reviewed and validated"),
    "responding": ("Officers Responding", "Officers are now responding to your report"),
    "resolved":   ("Report Resolved", "Your report has been resolved"),
    "rejected":   ("Report Needs Attention", "Your report requires additional information"),
}

CITIZEN_VISIBLE_STATUSES = frozenset(_CITIZEN_STATUS_TEMPLATES)


def assignment_message(report_title: str) -> tuple[str, str]:
    """Title/body for the officer who receives an assignment."""
    return "New Assignment", f"You have been assigned to: {report_title}"


def citizen_status_message(status: str) -> tuple[str, str] | None:
    """Title/body for the reporting citizen, or ``None`` if not citizen-visible."""
    return _CITIZEN_STATUS_TEMPLATES.get(status)


def decline_message(report_ref: str) -> tuple[str, str]:
    """Title/body sent to supervisors when an officer declines."""
    return "Assignment Declined", f"Case {report_ref} was declined and is now unassigned"


def closure_rejected_message(report_ref: str) -> tuple[str, str]:
    return "Closure Rejected", f"Case {report_ref} was returned to you for further work"


def closure_unassigned_message(report_ref: str) -> tuple[str, str]:
    """Sent to supervisors when a rejected closure cannot go back to its handler."""
    return "Closure Rejected", f"Case {report_ref} was reopened and is now unassigned"


@dataclass
class BatchResult:
    """Outcome of ``send_batch``: ids queued and per-recipient failures."""

    delivered: list[int] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class NotificationDispatcher:
    """
    Stateless helper for queueing and acknowledging inbox notifications.

    All methods are classmethods; no instance state is needed.
    """

    @classmethod
    def send(
        cls,
        recipient_id: int,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
        *,
        deadline: Deadline | None = None,
    ) -> int:
        """
        Queue one notification in ``recipient_id``'s inbox.

        Args:
            recipient_id: PK of the recipient user.
            title:        Short heading.
            body:         Message text.
            data:         Small JSON payload (ids, status values).
            deadline:     Optional time budget; ``Timeout`` when spent.

        Returns:
            PK of the created ``InboxNotification``.

        Raises:
            NotFound: If the recipient does not exist.
            Timeout:  If ``deadline`` expired before the write.
        """
        from django.contrib.auth import get_user_model

        from core.models import InboxNotification  # lazy import, avoids circular deps

        check_deadline(deadline, "notification send")
        if not get_user_model().objects.filter(pk=recipient_id).exists():
            raise NotFound(f"Recipient {recipient_id} does not exist.")

        notification = run_in_atomic(
            InboxNotification.objects.create,
            recipient_id=recipient_id,
            title=title,
            body=body,
            data=data or {},
        )
        logger.info(
            "Queued notification %s for recipient=%s: %s",
            notification.pk, recipient_id, title,
        )
        return notification.pk

    @classmethod
    def send_batch(
        cls,
        recipient_ids: Iterable[int],
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
        *,
        deadline: Deadline | None = None,
    ) -> BatchResult:
        """
        Apply ``send`` independently to every recipient.

        Duplicate ids are sent once.  Never raises for a single
        recipient's failure; it is recorded in ``BatchResult.failed``.
        """
        result = BatchResult()
        seen: set[int] = set()
        for recipient_id in recipient_ids:
            if recipient_id in seen:
                continue
            seen.add(recipient_id)
            try:
                result.delivered.append(
                    cls.send(recipient_id, title, body, data, deadline=deadline)
                )
            except Exception as exc:
                logger.warning(
                    "Notification to recipient=%s failed: %s", recipient_id, exc,
                )
                result.failed.append({"recipient_id": recipient_id, "error": str(exc)})

        if not seen:
            logger.warning("send_batch called with no recipients for '%s'", title)
        return result

    # ── Recipient-side acknowledgement ──────────────────────────────

    @classmethod
    def inbox(cls, user):
        """The user's notifications, newest first."""
        from core.models import InboxNotification

        return InboxNotification.objects.filter(recipient=user).order_by("-created_at", "-id")

    @classmethod
    def _owned(cls, user, notification_id: int) -> InboxNotification:
        from core.models import InboxNotification

        try:
            return InboxNotification.objects.get(pk=notification_id, recipient=user)
        except InboxNotification.DoesNotExist:
            raise NotFound(f"Notification {notification_id} not found.")

    @classmethod
    def mark_delivered(cls, user, notification_id: int) -> InboxNotification:
        """Flip ``delivered`` to true.  Idempotent; owner only."""
        notification = cls._owned(user, notification_id)
        if not notification.delivered:
            notification.delivered = True
            notification.save(update_fields=["delivered"])
        return notification

    @classmethod
    def mark_seen(cls, user, notification_id: int) -> InboxNotification:
        """
        Flip ``seen`` to true.  Seeing implies delivery, so ``delivered``
        is set too.  Idempotent; owner only.
        """
        notification = cls._owned(user, notification_id)
        if not notification.seen:
            notification.seen = True
            notification.delivered = True
            notification.save(update_fields=["seen", "delivered"])
        return notification

    @classmethod
    def purge_expired(cls, retention_days: int | None = None, *, now=None) -> int:
        """Delete notifications older than the retention window; return the count."""
        from core.constants import workflow_setting
        from core.models import InboxNotification

        if retention_days is None:
            retention_days = workflow_setting("NOTIFICATION_RETENTION_DAYS")
        cutoff = (now or timezone.now()) - timedelta(days=retention_days)
        deleted, _ = InboxNotification.objects.filter(created_at__lt=cutoff).delete()
        logger.info("Purged %d notification(s) older than %s", deleted, cutoff)
        return deleted
