"""
Core app services — **Service Layer**.

Contains cross-app aggregation and read logic.  Views delegate all
business logic to the service classes defined here, keeping views thin
and ensuring testability.

╔══════════════════════════════════════════════════════════════════════╗
║  CROSS-APP IMPORT RULEBOOK                                         ║
║                                                                    ║
║  The core app is imported by every other app, so it must never     ║
║  import their models at **module level**.                          ║
║                                                                    ║
║  1. Import other apps' models inside the method that needs them:   ║
║       from django.apps import apps                                 ║
║       Report = apps.get_model("reports", "Report")                 ║
║                                                                    ║
║  2. Choice/enum classes (ReportStatus, OfficerRank, ...) live in   ║
║     the respective app's ``models.py``; import them lazily too.    ║
║                                                                    ║
║  3. Prefer ORM ``.aggregate()`` and ``.values().annotate()`` over  ║
║     Python-side loops.                                             ║
╚══════════════════════════════════════════════════════════════════════╝
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.apps import apps
from django.db.models import Count, Q, QuerySet

from core.domain.access import require_permission
from core.domain.notifications import NotificationDispatcher
from core.models import AuditLog
from core.permissions_constants import CorePerms, perm

if TYPE_CHECKING:
    from accounts.models import User


# ════════════════════════════════════════════════════════════════════
#  Dashboard Aggregation Service
# ════════════════════════════════════════════════════════════════════

class DashboardAggregationService:
    """
    Produces the statistics dict consumed by ``DashboardStatsSerializer``.

    Figures are computed over the reports the user may see (the same
    scope rules as the report list), so a citizen's dashboard only
    counts their own reports and an officer's only their assignments.
    """

    #: Maximum number of recent audit entries to return.
    RECENT_ACTIVITY_LIMIT: int = 20

    def __init__(self, user: User) -> None:
        self.user = user

    def get_stats(self) -> dict[str, Any]:
        from reports.models import OPEN_STATUSES, ReportStatus
        from reports.services import ReportQueryService

        report_qs = ReportQueryService.get_filtered_queryset(self.user)
        aggregates = report_qs.aggregate(
            total_reports=Count("id"),
            pending_reports=Count("id", filter=Q(status=ReportStatus.PENDING)),
            open_reports=Count("id", filter=Q(status__in=OPEN_STATUSES)),
            unassigned_reports=Count("id", filter=Q(status=ReportStatus.UNASSIGNED)),
            resolved_reports=Count("id", filter=Q(status=ReportStatus.RESOLVED)),
            awaiting_closure_review=Count(
                "id",
                filter=Q(status=ReportStatus.RESOLVED, closure_approved__isnull=True),
            ),
        )
        return {
            **aggregates,
            "reports_by_status": self._group(report_qs, "status"),
            "reports_by_category": self._group(report_qs, "category"),
            "reports_by_priority": self._group(report_qs, "priority"),
            "active_officers": self._active_officer_count(),
            "recent_activity": self._recent_activity(),
        }

    @staticmethod
    def _group(qs: QuerySet, field: str) -> list[dict[str, Any]]:
        rows = qs.values(field).annotate(count=Count("id")).order_by("-count", field)
        return [{"key": row[field], "count": row["count"]} for row in rows]

    @staticmethod
    def _active_officer_count() -> int:
        from accounts.models import OfficerStatus

        Officer = apps.get_model("accounts", "Officer")
        return Officer.objects.filter(status=OfficerStatus.ACTIVE, user__is_active=True).count()

    def _recent_activity(self) -> list[dict[str, Any]]:
        """Latest audit entries; empty for users who may not read the log."""
        if not self.user.has_perm(perm(CorePerms.APP_LABEL, CorePerms.CAN_VIEW_AUDIT_LOG)):
            return []
        entries = AuditLog.objects.all()[: self.RECENT_ACTIVITY_LIMIT]
        return [
            {
                "action": entry.action,
                "actor": entry.actor_ref,
                "target_type": entry.target_type,
                "target_id": entry.target_id,
                "created_at": entry.created_at,
            }
            for entry in entries
        ]


# ════════════════════════════════════════════════════════════════════
#  System Constants Service
# ════════════════════════════════════════════════════════════════════

class SystemConstantsService:
    """
    Gathers all system-wide choice enumerations and the role hierarchy
    into a single dict for the frontend.

    This service is **stateless**; all constants are public information
    needed to render dropdowns and labels.
    """

    @staticmethod
    def get_constants() -> dict[str, Any]:
        from accounts.models import OfficerRank, OfficerStatus
        from core.models import AuditAction
        from reports.models import (
            MediaKind,
            ReportPriority,
            ReportStatus,
            TriageLevel,
        )

        Role = apps.get_model("accounts", "Role")
        to_list = SystemConstantsService._choices_to_list

        roles = list(
            Role.objects
            .order_by("-hierarchy_level")
            .values("id", "name", "hierarchy_level")
        )

        return {
            "report_statuses": to_list(ReportStatus),
            "report_priorities": to_list(ReportPriority),
            "triage_levels": to_list(TriageLevel),
            "media_kinds": to_list(MediaKind),
            "officer_ranks": to_list(OfficerRank),
            "officer_statuses": to_list(OfficerStatus),
            "audit_actions": to_list(AuditAction),
            "role_hierarchy": roles,
        }

    @staticmethod
    def _choices_to_list(choices_class: type) -> list[dict[str, str]]:
        """
        Convert a Django ``TextChoices`` class to a list of
        ``{"value": ..., "label": ...}`` dicts.
        """
        return [
            {"value": str(value), "label": str(label)}
            for value, label in choices_class.choices
        ]


# ═══════════════════════════════════════════════════════════════════
#  Notification Service
# ═══════════════════════════════════════════════════════════════════

class NotificationService:
    """Recipient-side inbox operations for one user."""

    def __init__(self, user: Any) -> None:
        self.user = user

    def list_notifications(self, *, unseen_only: bool = False) -> QuerySet:
        qs = NotificationDispatcher.inbox(self.user)
        if unseen_only:
            qs = qs.filter(seen=False)
        return qs

    def mark_delivered(self, notification_id: int):
        return NotificationDispatcher.mark_delivered(self.user, notification_id)

    def mark_seen(self, notification_id: int):
        return NotificationDispatcher.mark_seen(self.user, notification_id)


# ═══════════════════════════════════════════════════════════════════
#  Audit Log Query Service
# ═══════════════════════════════════════════════════════════════════

class AuditLogQueryService:
    """Filtered reads of the audit trail for holders of ``can_view_audit_log``."""

    FILTER_FIELDS = ("action", "target_type", "target_id", "actor_ref")

    @staticmethod
    def get_filtered_queryset(requesting_user: Any, filters: dict[str, Any] | None = None) -> QuerySet:
        require_permission(
            requesting_user,
            perm(CorePerms.APP_LABEL, CorePerms.CAN_VIEW_AUDIT_LOG),
            message="You are not allowed to read the audit log.",
        )
        qs = AuditLog.objects.select_related("actor")
        filters = filters or {}
        for name in AuditLogQueryService.FILTER_FIELDS:
            value = filters.get(name)
            if value:
                qs = qs.filter(**{name: value})
        if filters.get("since"):
            qs = qs.filter(created_at__gte=filters["since"])
        return qs
