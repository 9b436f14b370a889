"""
Core app serializers.

Response serializers for the dashboard, system constants, inbox and
audit-log endpoints served by the core app, plus the query-parameter
serializer for audit-log filtering.

Architectural note
------------------
Dashboard and constants serializers work exclusively with plain Python
dicts / lists produced by the service layer, keeping the core app
decoupled from concrete model implementations in ``reports`` and
``accounts``.
"""

from __future__ import annotations

from rest_framework import serializers

from .models import AuditAction, AuditLog, AuditTargetType, InboxNotification


# ════════════════════════════════════════════════════════════════════
#  Dashboard Statistics
# ════════════════════════════════════════════════════════════════════

class GroupCountSerializer(serializers.Serializer):
    """
    One bucket of a grouped count.

    Example::

        {"key": "assigned", "count": 12}
    """

    key = serializers.CharField(help_text="Group value (status, category or priority).")
    count = serializers.IntegerField(help_text="Number of reports in the group.")


class RecentActivitySerializer(serializers.Serializer):
    action = serializers.CharField()
    actor = serializers.CharField(help_text='Actor user id, or "system".')
    target_type = serializers.CharField()
    target_id = serializers.CharField(allow_blank=True)
    created_at = serializers.DateTimeField()


class DashboardStatsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/dashboard/``.

    Counts are scoped to the reports the requesting user may see.

    Response shape::

        {
            "total_reports": 150,
            "pending_reports": 9,
            "open_reports": 42,
            "unassigned_reports": 3,
            "resolved_reports": 95,
            "awaiting_closure_review": 7,
            "active_officers": 18,
            "reports_by_status": [...],
            "reports_by_category": [...],
            "reports_by_priority": [...],
            "recent_activity": [...]
        }
    """

    # ── Scalar counters ──────────────────────────────────────────────
    total_reports = serializers.IntegerField(help_text="Reports visible to the user.")
    pending_reports = serializers.IntegerField(help_text="Reports awaiting desk validation.")
    open_reports = serializers.IntegerField(help_text="Assigned, accepted or responding.")
    unassigned_reports = serializers.IntegerField(help_text="Declined and waiting for a new officer.")
    resolved_reports = serializers.IntegerField()
    awaiting_closure_review = serializers.IntegerField(
        help_text="Resolved reports no supervisor has reviewed yet.",
    )
    active_officers = serializers.IntegerField()

    # ── Nested breakdowns ────────────────────────────────────────────
    reports_by_status = GroupCountSerializer(many=True)
    reports_by_category = GroupCountSerializer(many=True)
    reports_by_priority = GroupCountSerializer(many=True)
    recent_activity = RecentActivitySerializer(
        many=True,
        help_text="Latest audit entries (empty without audit-log access).",
    )


# ════════════════════════════════════════════════════════════════════
#  System Constants / Enums
# ════════════════════════════════════════════════════════════════════

class ChoiceItemSerializer(serializers.Serializer):
    """
    A single key-label pair representing one choice/enum option.

    Example::

        {"value": "responding", "label": "Responding"}
    """

    value = serializers.CharField(help_text="Machine-readable value to send in API requests.")
    label = serializers.CharField(help_text="Human-readable display label for the UI.")


class RoleHierarchyItemSerializer(serializers.Serializer):
    id = serializers.IntegerField(help_text="Role PK.")
    name = serializers.CharField(help_text="Role display name.")
    hierarchy_level = serializers.IntegerField(
        help_text="Authority level (higher = more authority).",
    )


class SystemConstantsSerializer(serializers.Serializer):
    """Top-level response serializer for ``GET /api/core/constants/``."""

    report_statuses = ChoiceItemSerializer(many=True)
    report_priorities = ChoiceItemSerializer(many=True)
    triage_levels = ChoiceItemSerializer(many=True)
    media_kinds = ChoiceItemSerializer(many=True)
    officer_ranks = ChoiceItemSerializer(many=True)
    officer_statuses = ChoiceItemSerializer(many=True)
    audit_actions = ChoiceItemSerializer(many=True)
    role_hierarchy = RoleHierarchyItemSerializer(many=True)


# ════════════════════════════════════════════════════════════════════
#  Inbox Notifications
# ════════════════════════════════════════════════════════════════════

class InboxNotificationSerializer(serializers.ModelSerializer):
    """Read-only view of one inbox entry."""

    class Meta:
        model = InboxNotification
        fields = ["id", "title", "body", "data", "delivered", "seen", "created_at"]
        read_only_fields = fields


class NotificationFilterSerializer(serializers.Serializer):
    unseen = serializers.BooleanField(required=False, default=False)


# ════════════════════════════════════════════════════════════════════
#  Audit Log
# ════════════════════════════════════════════════════════════════════

class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = ["id", "actor", "actor_ref", "action", "target_type", "target_id", "details", "created_at"]
        read_only_fields = fields


class AuditLogFilterSerializer(serializers.Serializer):
    """Query parameters for ``GET /api/core/audit-logs/``."""

    action = serializers.ChoiceField(choices=AuditAction.choices, required=False)
    target_type = serializers.ChoiceField(choices=AuditTargetType.choices, required=False)
    target_id = serializers.CharField(required=False, max_length=64)
    actor_ref = serializers.CharField(required=False, max_length=64)
    since = serializers.DateTimeField(required=False)
