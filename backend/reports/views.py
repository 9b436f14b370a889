"""
Reports app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

ViewSets
--------
- ``ReportViewSet``         — list / retrieve / destroy plus one @action
  per workflow operation; workflow actions answer with the
  ``{"report", "previous", "effects"}`` envelope.
- ``BlotterCounterViewSet`` — read-only counter inspection per period.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from core.serializers import AuditLogSerializer

from .serializers import (
    AssignReportSerializer,
    BlotterCounterSerializer,
    DeletionOutcomeSerializer,
    EffectOutcomeSerializer,
    NotifyOfficerSerializer,
    OfficerNoteSerializer,
    PrioritySerializer,
    ReassignSerializer,
    ReasonSerializer,
    ReportCommentSerializer,
    ReportDetailSerializer,
    ReportEvidenceSerializer,
    ReportFilterSerializer,
    ReportListSerializer,
    TransitionSerializer,
    ValidateReportSerializer,
    WorkflowOutcomeSerializer,
)
from .services import CaseWorkflowService, ReportQueryService

logger = logging.getLogger(__name__)

_WORKFLOW_ERRORS = {
    400: OpenApiResponse(description="Missing required field."),
    403: OpenApiResponse(description="Permission denied."),
    404: OpenApiResponse(description="Report or officer not found."),
    409: OpenApiResponse(description="Invalid transition or no eligible officer."),
}


def _outcome_response(outcome, code=status.HTTP_200_OK) -> Response:
    return Response(WorkflowOutcomeSerializer(outcome).data, status=code)


def _created_response(outcome, serializer_class) -> Response:
    payload = WorkflowOutcomeSerializer(outcome).data
    payload["created"] = serializer_class(outcome.created).data
    return Response(payload, status=status.HTTP_201_CREATED)


class ReportViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the reports app.

    Uses ``viewsets.ViewSet`` so every action is explicitly defined.
    The base permission is ``IsAuthenticated``; role and ownership checks
    happen exclusively inside the service layer.
    """

    permission_classes = [IsAuthenticated]

    # ── Read ────────────────────────────────────────────────────────

    @extend_schema(
        summary="List reports",
        description="Reports visible to the authenticated user, optionally filtered.",
        parameters=[
            OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="priority", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="triage_level", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="jurisdiction_id", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="category", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="assigned_officer", type=int, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="unassigned", type=bool, location=OpenApiParameter.QUERY),
        ],
        responses={200: ReportListSerializer(many=True)},
        tags=["Reports"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = ReportFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        qs = ReportQueryService.get_filtered_queryset(request.user, filter_serializer.validated_data)
        return Response(ReportListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Retrieve a report",
        responses={
            200: ReportDetailSerializer,
            404: OpenApiResponse(description="Report not found or not visible."),
        },
        tags=["Reports"],
    )
    def retrieve(self, request: Request, pk: str = None) -> Response:
        report = ReportQueryService.get_report(pk, request.user)
        return Response(ReportDetailSerializer(report).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Delete a report",
        description=(
            "Administrative hard delete. Audited as `report_deletion`; the "
            "`effects` list shows whether that audit entry was written."
        ),
        responses={
            200: DeletionOutcomeSerializer,
            403: OpenApiResponse(description="Permission denied."),
            404: OpenApiResponse(description="Report not found."),
        },
        tags=["Reports"],
    )
    def destroy(self, request: Request, pk: str = None) -> Response:
        outcome = CaseWorkflowService.delete_report(pk, request.user)
        return Response(DeletionOutcomeSerializer(outcome).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Report audit trail",
        responses={200: AuditLogSerializer(many=True), 403: OpenApiResponse(description="Permission denied.")},
        tags=["Reports"],
    )
    @action(detail=True, methods=["get"], url_path="audit-log")
    def audit_log(self, request: Request, pk: str = None) -> Response:
        entries = ReportQueryService.audit_trail(pk, request.user)
        return Response(AuditLogSerializer(entries, many=True).data)

    # ── Intake & assignment ─────────────────────────────────────────

    @extend_schema(
        summary="Validate a report",
        description=(
            "Desk officer validates a pending report: a blotter number is issued "
            "and, when `officer_id` is given, the report is assigned in the same step."
        ),
        request=ValidateReportSerializer,
        responses={200: WorkflowOutcomeSerializer, 503: OpenApiResponse(description="Counter contention."), **_WORKFLOW_ERRORS},
        tags=["Reports – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="validate")
    def validate(self, request: Request, pk: str = None) -> Response:
        serializer = ValidateReportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        outcome = CaseWorkflowService.validate_report(
            pk,
            request.user,
            data.get("triage_level") or None,
            data.get("notes", ""),
            data.get("officer_id"),
        )
        return _outcome_response(outcome)

    @extend_schema(
        summary="Assign a report",
        request=AssignReportSerializer,
        responses={200: WorkflowOutcomeSerializer, **_WORKFLOW_ERRORS},
        tags=["Reports – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="assign")
    def assign(self, request: Request, pk: str = None) -> Response:
        serializer = AssignReportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = CaseWorkflowService.assign_report(
            pk, serializer.validated_data["officer_id"], request.user,
        )
        return _outcome_response(outcome)

    @extend_schema(
        summary="Change report status",
        request=TransitionSerializer,
        responses={200: WorkflowOutcomeSerializer, **_WORKFLOW_ERRORS},
        tags=["Reports – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="transition")
    def transition(self, request: Request, pk: str = None) -> Response:
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = CaseWorkflowService.change_status(
            pk,
            serializer.validated_data["target_status"],
            request.user,
            serializer.validated_data.get("notes", ""),
        )
        return _outcome_response(outcome)

    @extend_schema(
        summary="Accept an assignment",
        request=None,
        responses={200: WorkflowOutcomeSerializer, **_WORKFLOW_ERRORS},
        tags=["Reports – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="accept")
    def accept(self, request: Request, pk: str = None) -> Response:
        return _outcome_response(CaseWorkflowService.accept_assignment(pk, request.user))

    @extend_schema(
        summary="Decline an assignment",
        request=ReasonSerializer,
        responses={200: WorkflowOutcomeSerializer, **_WORKFLOW_ERRORS},
        tags=["Reports – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="decline")
    def decline(self, request: Request, pk: str = None) -> Response:
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = CaseWorkflowService.decline_assignment(
            pk, request.user, serializer.validated_data["reason"],
        )
        return _outcome_response(outcome)

    @extend_schema(
        summary="Message the assigned officer",
        description=(
            "Queues an inbox notification for the report's current assignee. "
            "The report itself is not changed."
        ),
        request=NotifyOfficerSerializer,
        responses={
            200: EffectOutcomeSerializer(many=True),
            400: OpenApiResponse(description="Missing message body."),
            403: OpenApiResponse(description="Permission denied."),
            404: OpenApiResponse(description="Report not found."),
            409: OpenApiResponse(description="Report has no assigned officer."),
        },
        tags=["Reports – Supervisor"],
    )
    @action(detail=True, methods=["post"], url_path="notify-officer")
    def notify_officer(self, request: Request, pk: str = None) -> Response:
        serializer = NotifyOfficerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = CaseWorkflowService.notify_officer(
            pk, request.user,
            serializer.validated_data["title"],
            serializer.validated_data["body"],
        )
        return Response({"effects": [outcome.as_dict()]}, status=status.HTTP_200_OK)

    # ── Supervisor overrides ────────────────────────────────────────

    @extend_schema(
        summary="Reassign a report",
        request=ReassignSerializer,
        responses={200: WorkflowOutcomeSerializer, **_WORKFLOW_ERRORS},
        tags=["Reports – Supervisor"],
    )
    @action(detail=True, methods=["post"], url_path="reassign")
    def reassign(self, request: Request, pk: str = None) -> Response:
        serializer = ReassignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = CaseWorkflowService.reassign(
            pk,
            serializer.validated_data["officer_id"],
            request.user,
            serializer.validated_data.get("reason", ""),
        )
        return _outcome_response(outcome)

    @extend_schema(
        summary="Approve closure",
        request=None,
        responses={200: WorkflowOutcomeSerializer, **_WORKFLOW_ERRORS},
        tags=["Reports – Supervisor"],
    )
    @action(detail=True, methods=["post"], url_path="approve-closure")
    def approve_closure(self, request: Request, pk: str = None) -> Response:
        return _outcome_response(CaseWorkflowService.approve_closure(pk, request.user))

    @extend_schema(
        summary="Reject closure",
        description=(
            "Returns a resolved report to `responding` with the officer who handled it, "
            "or to `unassigned` when that officer is no longer eligible."
        ),
        request=ReasonSerializer,
        responses={200: WorkflowOutcomeSerializer, **_WORKFLOW_ERRORS},
        tags=["Reports – Supervisor"],
    )
    @action(detail=True, methods=["post"], url_path="reject-closure")
    def reject_closure(self, request: Request, pk: str = None) -> Response:
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = CaseWorkflowService.reject_closure(
            pk, request.user, serializer.validated_data["reason"],
        )
        return _outcome_response(outcome)

    # ── Annotations ─────────────────────────────────────────────────

    @extend_schema(
        summary="Change priority",
        request=PrioritySerializer,
        responses={200: WorkflowOutcomeSerializer, **_WORKFLOW_ERRORS},
        tags=["Reports – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="priority")
    def priority(self, request: Request, pk: str = None) -> Response:
        serializer = PrioritySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = CaseWorkflowService.change_priority(
            pk, serializer.validated_data["priority"], request.user,
        )
        return _outcome_response(outcome)

    @extend_schema(
        summary="Add an officer note",
        request=OfficerNoteSerializer,
        responses={201: WorkflowOutcomeSerializer, **_WORKFLOW_ERRORS},
        tags=["Reports – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="notes")
    def notes(self, request: Request, pk: str = None) -> Response:
        serializer = OfficerNoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = CaseWorkflowService.add_officer_note(
            pk, request.user, serializer.validated_data["body"],
        )
        return _created_response(outcome, OfficerNoteSerializer)

    @extend_schema(
        summary="Add a comment",
        request=ReportCommentSerializer,
        responses={201: WorkflowOutcomeSerializer, **_WORKFLOW_ERRORS},
        tags=["Reports – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="comments")
    def comments(self, request: Request, pk: str = None) -> Response:
        serializer = ReportCommentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = CaseWorkflowService.add_comment(
            pk, request.user, serializer.validated_data["body"],
        )
        return _created_response(outcome, ReportCommentSerializer)

    @extend_schema(
        summary="Attach evidence",
        request=ReportEvidenceSerializer,
        responses={201: WorkflowOutcomeSerializer, **_WORKFLOW_ERRORS},
        tags=["Reports – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="evidence")
    def evidence(self, request: Request, pk: str = None) -> Response:
        serializer = ReportEvidenceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        outcome = CaseWorkflowService.add_evidence(
            pk,
            request.user,
            data["media_url"],
            data["media_kind"],
            data.get("description", ""),
        )
        return _created_response(outcome, ReportEvidenceSerializer)


class BlotterCounterViewSet(viewsets.ViewSet):
    """GET /api/reports/counters/{period_key}/"""

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d{4}-\d{2}"

    @extend_schema(
        summary="Inspect a blotter counter",
        responses={200: BlotterCounterSerializer, 403: OpenApiResponse(description="Permission denied.")},
        tags=["Reports"],
    )
    def retrieve(self, request: Request, pk: str = None) -> Response:
        return Response(BlotterCounterSerializer(ReportQueryService.counter(pk, request.user)).data)
