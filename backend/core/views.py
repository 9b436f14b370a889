"""
Core app views — **Thin Views**.

Each view delegates all business logic to the corresponding service in
``core.services``.  Views are responsible only for:

1. Extracting and validating query parameters from the request.
2. Calling the service with the authenticated user and parameters.
3. Serialising the result and returning an HTTP ``Response``.

No model imports, no aggregation logic, no cross-app queries.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    AuditLogFilterSerializer,
    AuditLogSerializer,
    DashboardStatsSerializer,
    InboxNotificationSerializer,
    NotificationFilterSerializer,
    SystemConstantsSerializer,
)
from .services import (
    AuditLogQueryService,
    DashboardAggregationService,
    NotificationService,
    SystemConstantsService,
)


class DashboardStatsView(APIView):
    """
    **GET /api/core/dashboard/**

    Aggregated report statistics, scoped to the reports the
    authenticated user may see.  See ``DashboardAggregationService``.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Dashboard statistics",
        responses={200: OpenApiResponse(response=DashboardStatsSerializer, description="Dashboard stats.")},
        tags=["Dashboard"],
    )
    def get(self, request: Request) -> Response:
        data = DashboardAggregationService(user=request.user).get_stats()
        return Response(DashboardStatsSerializer(data).data, status=status.HTTP_200_OK)


class SystemConstantsView(APIView):
    """
    **GET /api/core/constants/**

    Return all system-wide choice enumerations and the role hierarchy
    so the frontend can build dropdowns, filters, and labels without
    hardcoding values.

    **Authentication**: Not required (``AllowAny``).
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="System constants",
        responses={200: OpenApiResponse(response=SystemConstantsSerializer, description="System constants.")},
        tags=["System"],
    )
    def get(self, request: Request) -> Response:
        data = SystemConstantsService.get_constants()
        return Response(SystemConstantsSerializer(data).data, status=status.HTTP_200_OK)


class NotificationViewSet(viewsets.ViewSet):
    """
    **Inbox API** for the authenticated user.

    Endpoints
    ---------
    GET  /api/core/notifications/                  → list (``?unseen=true`` to filter)
    POST /api/core/notifications/{id}/delivered/   → listener received it
    POST /api/core/notifications/{id}/seen/        → user acknowledged it

    Both flag endpoints are idempotent.  Another user's notification
    answers 404.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List notifications",
        parameters=[OpenApiParameter(name="unseen", type=bool, location=OpenApiParameter.QUERY)],
        responses={200: InboxNotificationSerializer(many=True)},
        tags=["Notifications"],
    )
    def list(self, request: Request) -> Response:
        params = NotificationFilterSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        notifications = NotificationService(user=request.user).list_notifications(
            unseen_only=params.validated_data["unseen"],
        )
        return Response(InboxNotificationSerializer(notifications, many=True).data)

    @extend_schema(
        summary="Mark notification delivered",
        request=None,
        responses={
            200: InboxNotificationSerializer,
            404: OpenApiResponse(description="Not found or not yours."),
        },
        tags=["Notifications"],
    )
    @action(detail=True, methods=["post"], url_path="delivered")
    def delivered(self, request: Request, pk: int = None) -> Response:
        notification = NotificationService(user=request.user).mark_delivered(pk)
        return Response(InboxNotificationSerializer(notification).data)

    @extend_schema(
        summary="Mark notification seen",
        request=None,
        responses={
            200: InboxNotificationSerializer,
            404: OpenApiResponse(description="Not found or not yours."),
        },
        tags=["Notifications"],
    )
    @action(detail=True, methods=["post"], url_path="seen")
    def seen(self, request: Request, pk: int = None) -> Response:
        notification = NotificationService(user=request.user).mark_seen(pk)
        return Response(InboxNotificationSerializer(notification).data)


class AuditLogViewSet(viewsets.ViewSet):
    """
    **GET /api/core/audit-logs/**

    Read-only, filterable audit trail.  Requires ``core.can_view_audit_log``.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List audit entries",
        parameters=[AuditLogFilterSerializer],
        responses={
            200: AuditLogSerializer(many=True),
            403: OpenApiResponse(description="Permission denied."),
        },
        tags=["Audit"],
    )
    def list(self, request: Request) -> Response:
        params = AuditLogFilterSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        entries = AuditLogQueryService.get_filtered_queryset(request.user, params.validated_data)
        return Response(AuditLogSerializer(entries, many=True).data)
