"""
Reports app serializers.

Contains all Request and Response serializers for the Reports API.
Serializers handle field definitions, read/write constraints, and field-level
validation only.  **No business logic or workflow transitions live here**;
those belong in ``services.py`` and ``state_machine.py``.

Structure
---------
1. Filter / query-param serializers
2. Report read serializers (list, detail)
3. Workflow action serializers
4. Sub-resource serializers (notes, comments, evidence, counter)
5. Workflow outcome envelope
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from .models import (
    MediaKind,
    OfficerNote,
    Report,
    ReportComment,
    ReportEvidence,
    ReportPriority,
    ReportStatus,
    TriageLevel,
)
from . import state_machine
from .services import AUTO, DEFAULT_OFFICER_MESSAGE_TITLE


class OfficerIdField(serializers.CharField):
    """An officer primary key, or the literal ``"auto"``."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data).strip()
        if value.lower() == AUTO:
            return AUTO
        if not value.isdigit():
            raise serializers.ValidationError('Must be an officer id or "auto".')
        return int(value)


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class ReportFilterSerializer(serializers.Serializer):
    """
    Validates query-parameter filters for ``GET /api/reports/``.

    All fields are optional.  The view passes the validated dict directly
    to ``ReportQueryService.get_filtered_queryset``.
    """

    status = serializers.ChoiceField(choices=ReportStatus.choices, required=False)
    priority = serializers.ChoiceField(choices=ReportPriority.choices, required=False)
    triage_level = serializers.ChoiceField(choices=TriageLevel.choices, required=False)
    jurisdiction_id = serializers.CharField(required=False, max_length=64)
    category = serializers.CharField(required=False, max_length=100)
    assigned_officer = serializers.IntegerField(required=False, min_value=1)
    unassigned = serializers.BooleanField(required=False, default=False)


# ═══════════════════════════════════════════════════════════════════
#  2. Report Read Serializers
# ═══════════════════════════════════════════════════════════════════


class ReportListSerializer(serializers.ModelSerializer):
    """Compact representation for the list endpoint."""

    title = serializers.CharField(read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Report
        fields = [
            "id",
            "title",
            "category",
            "status",
            "status_display",
            "priority",
            "triage_level",
            "blotter_number",
            "assigned_officer",
            "assignment_status",
            "jurisdiction_id",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ReportDetailSerializer(serializers.ModelSerializer):
    """Full report, including workflow and closure-review fields."""

    title = serializers.CharField(read_only=True)
    reference = serializers.CharField(read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    allowed_targets = serializers.SerializerMethodField()

    class Meta:
        model = Report
        fields = [
            "id",
            "title",
            "reference",
            "category",
            "subcategory",
            "description",
            "latitude",
            "longitude",
            "address",
            "media_urls",
            "reporter",
            "jurisdiction_id",
            "status",
            "status_display",
            "allowed_targets",
            "priority",
            "blotter_number",
            "triage_level",
            "triage_notes",
            "assigned_officer",
            "assignment_status",
            "handled_by",
            "decline_reason",
            "resolution_notes",
            "rejection_reason",
            "closure_approved",
            "closure_reviewed_at",
            "closure_reviewer",
            "closure_rejection_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_allowed_targets(self, obj: Report) -> list[str]:
        """Statuses reachable through the generic transition endpoint."""
        return state_machine.allowed_targets(obj)


# ═══════════════════════════════════════════════════════════════════
#  3. Workflow Action Serializers
# ═══════════════════════════════════════════════════════════════════


class ValidateReportSerializer(serializers.Serializer):
    """``POST /api/reports/{id}/validate/``"""

    triage_level = serializers.ChoiceField(choices=TriageLevel.choices, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    officer_id = OfficerIdField(
        required=False,
        allow_null=True,
        help_text='Assign in the same step: an officer id, or "auto" for the least-loaded officer.',
    )


class AssignReportSerializer(serializers.Serializer):
    officer_id = OfficerIdField(help_text='Officer id, or "auto" for the least-loaded officer.')


class TransitionSerializer(serializers.Serializer):
    """Generic status change (``POST /api/reports/{id}/transition/``)."""

    target_status = serializers.ChoiceField(choices=ReportStatus.choices)
    notes = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        help_text="Required when resolving or rejecting.",
    )


class ReasonSerializer(serializers.Serializer):
    """Decline and closure-rejection reasons.  Blank values reach the service."""

    reason = serializers.CharField(required=False, allow_blank=True, default="")


class ReassignSerializer(serializers.Serializer):
    officer_id = OfficerIdField()
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=200)


class PrioritySerializer(serializers.Serializer):
    priority = serializers.ChoiceField(choices=ReportPriority.choices)


class NotifyOfficerSerializer(serializers.Serializer):
    """Blank titles fall back to the default; blank bodies reach the service."""

    title = serializers.CharField(
        required=False, allow_blank=True, max_length=200, default=DEFAULT_OFFICER_MESSAGE_TITLE,
    )
    body = serializers.CharField(required=False, allow_blank=True, default="", max_length=2000)


# ═══════════════════════════════════════════════════════════════════
#  4. Sub-resource Serializers
# ═══════════════════════════════════════════════════════════════════


class OfficerNoteSerializer(serializers.ModelSerializer):
    class Meta:
        model = OfficerNote
        fields = ["id", "report", "author", "body", "created_at"]
        read_only_fields = ["id", "report", "author", "created_at"]


class ReportCommentSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReportComment
        fields = ["id", "report", "author", "body", "created_at"]
        read_only_fields = ["id", "report", "author", "created_at"]


class ReportEvidenceSerializer(serializers.ModelSerializer):
    media_kind = serializers.ChoiceField(choices=MediaKind.choices)

    class Meta:
        model = ReportEvidence
        fields = ["id", "report", "uploaded_by", "media_url", "media_kind", "description", "created_at"]
        read_only_fields = ["id", "report", "uploaded_by", "created_at"]


class BlotterCounterSerializer(serializers.Serializer):
    period_key = serializers.CharField()
    year = serializers.IntegerField()
    month = serializers.IntegerField()
    last_number = serializers.IntegerField()
    last_issued = serializers.CharField(allow_null=True)
    updated_at = serializers.DateTimeField(allow_null=True)


# ═══════════════════════════════════════════════════════════════════
#  5. Workflow Outcome Envelope
# ═══════════════════════════════════════════════════════════════════


class EffectOutcomeSerializer(serializers.Serializer):
    effect = serializers.CharField()
    ok = serializers.BooleanField()
    error = serializers.CharField(required=False, allow_null=True)


class WorkflowOutcomeSerializer(serializers.Serializer):
    """
    ``{"report": ..., "previous": ..., "effects": [...]}``

    ``previous`` is the pre-mutation snapshot; ``effects`` reports every
    audit entry and notification attempted after the change committed.
    """

    report = ReportDetailSerializer()
    previous = serializers.DictField()
    effects = EffectOutcomeSerializer(many=True)

    def to_representation(self, instance) -> dict[str, Any]:
        return {
            "report": ReportDetailSerializer(instance.report).data,
            "previous": instance.previous,
            "effects": [outcome.as_dict() for outcome in instance.effects],
        }


class DeletionOutcomeSerializer(serializers.Serializer):
    """``{"deleted": id, "previous": ..., "effects": [...]}`` for an admin delete."""

    deleted = serializers.IntegerField()
    previous = serializers.DictField()
    effects = EffectOutcomeSerializer(many=True)

    def to_representation(self, instance) -> dict[str, Any]:
        return {
            "deleted": instance.previous["id"],
            "previous": instance.previous,
            "effects": [outcome.as_dict() for outcome in instance.effects],
        }
