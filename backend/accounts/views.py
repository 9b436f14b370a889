"""
Accounts app views.

All views follow the **Thin View** pattern: validate input via
serializers, delegate to the service layer, and return the result
wrapped in a DRF ``Response``.  **No business logic** resides here.

View Map
--------
- ``LoginView``       — POST /auth/login/
- ``LogoutView``      — POST /auth/logout/
- ``MeView``          — GET /me/
- ``UserViewSet``     — PATCH /users/{id}/assign-role/
- ``OfficerViewSet``  — /officers/ (list, retrieve, status, push-token, metrics)
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    AssignRoleSerializer,
    CustomTokenObtainPairSerializer,
    LogoutRequestSerializer,
    OfficerMetricsSerializer,
    OfficerSerializer,
    OfficerStatusSerializer,
    PushTokenSerializer,
    TokenResponseSerializer,
    UserDetailSerializer,
)
from .services import (
    CurrentUserService,
    OfficerMetricsService,
    OfficerService,
    SessionAuditService,
    UserManagementService,
)


# ═══════════════════════════════════════════════════════════════════
#  Authentication Views
# ═══════════════════════════════════════════════════════════════════


class LoginView(APIView):
    """
    POST /api/accounts/auth/login/

    Authenticates a user by username, phone number or email plus
    password and returns a JWT pair.  Console administrators get an
    ``admin_login`` audit entry.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        summary="Log in",
        request=CustomTokenObtainPairSerializer,
        responses={
            200: OpenApiResponse(response=TokenResponseSerializer, description="Token pair and user."),
            400: OpenApiResponse(description="Invalid credentials."),
        },
        tags=["Auth"],
    )
    def post(self, request: Request) -> Response:
        serializer = CustomTokenObtainPairSerializer(
            data=request.data,
            context={"request": request},
        )
        serializer.is_valid(raise_exception=True)

        user = serializer.user
        SessionAuditService.record_login(user)

        payload = dict(serializer.validated_data)
        payload["user"] = UserDetailSerializer(CurrentUserService.get_profile(user)).data
        return Response(payload, status=status.HTTP_200_OK)


class LogoutView(APIView):
    """
    POST /api/accounts/auth/logout/

    Tokens are stateless; the client discards them.  The server side
    only records ``admin_logout`` for console administrators.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Log out",
        request=LogoutRequestSerializer,
        responses={204: OpenApiResponse(description="Logged out.")},
        tags=["Auth"],
    )
    def post(self, request: Request) -> Response:
        LogoutRequestSerializer(data=request.data).is_valid(raise_exception=True)
        SessionAuditService.record_logout(request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class MeView(APIView):
    """GET /api/accounts/me/ — the authenticated user's profile."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current user",
        responses={200: UserDetailSerializer},
        tags=["Auth"],
    )
    def get(self, request: Request) -> Response:
        user = CurrentUserService.get_profile(request.user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  User Management ViewSet
# ═══════════════════════════════════════════════════════════════════


class UserViewSet(viewsets.ViewSet):
    """/api/accounts/users/ — administrative user management."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Assign a role",
        request=AssignRoleSerializer,
        responses={200: UserDetailSerializer},
        tags=["Users"],
    )
    @action(detail=True, methods=["patch"], url_path="assign-role")
    def assign_role(self, request: Request, pk: str = None) -> Response:
        serializer = AssignRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserManagementService.assign_role(
            user_id=pk,
            role_id=serializer.validated_data["role_id"],
            performed_by=request.user,
        )
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  Officer ViewSet
# ═══════════════════════════════════════════════════════════════════


class OfficerViewSet(viewsets.ViewSet):
    """
    /api/accounts/officers/

    Officer roster, duty-status changes (audited), push-token
    registration and cached workload metrics.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(summary="List officers", responses={200: OfficerSerializer(many=True)}, tags=["Officers"])
    def list(self, request: Request) -> Response:
        officers = OfficerService.assignment_pool()
        return Response(OfficerSerializer(officers, many=True).data)

    @extend_schema(summary="Retrieve an officer", responses={200: OfficerSerializer}, tags=["Officers"])
    def retrieve(self, request: Request, pk: str = None) -> Response:
        return Response(OfficerSerializer(OfficerService.get_officer(pk)).data)

    @extend_schema(
        summary="Change duty status",
        request=OfficerStatusSerializer,
        responses={200: OfficerSerializer},
        tags=["Officers"],
    )
    @action(detail=True, methods=["patch"], url_path="status")
    def set_status(self, request: Request, pk: str = None) -> Response:
        serializer = OfficerStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        officer = OfficerService.set_status(
            pk, serializer.validated_data["status"], performed_by=request.user,
        )
        return Response(OfficerSerializer(officer).data)

    @extend_schema(
        summary="Register push token",
        request=PushTokenSerializer,
        responses={200: OfficerSerializer},
        tags=["Officers"],
    )
    @action(detail=True, methods=["put"], url_path="push-token")
    def push_token(self, request: Request, pk: str = None) -> Response:
        serializer = PushTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        officer = OfficerService.update_push_token(
            pk, serializer.validated_data["push_token"], performed_by=request.user,
        )
        return Response(OfficerSerializer(officer).data)

    @extend_schema(
        summary="Officer workload metrics",
        responses={200: OfficerMetricsSerializer},
        tags=["Officers"],
    )
    @action(detail=True, methods=["get"], url_path="metrics")
    def metrics(self, request: Request, pk: str = None) -> Response:
        data = OfficerMetricsService().get_metrics(pk, requested_by=request.user)
        return Response(OfficerMetricsSerializer(data).data)
