"""
Accounts app serializers.

Contains the Request and Response serializers for the accounts API.
Serializers handle field definitions, read/write constraints, and
basic validation.  **No business logic** lives here; domain rules are
delegated to ``services.py``.
"""

from __future__ import annotations

from typing import Any

from django.contrib.auth import authenticate, get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import Officer, OfficerStatus, Role

User = get_user_model()


# ═══════════════════════════════════════════════════════════════════
#  Authentication Serializers
# ═══════════════════════════════════════════════════════════════════


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Custom SimpleJWT serializer that:

    1. Accepts ``identifier`` + ``password`` instead of
       ``username`` + ``password``.
    2. Resolves the user via the ``MultiFieldAuthBackend``.
    3. Injects RBAC claims (``role``, ``hierarchy_level``,
       ``permissions_list``, ``officer_rank``) into the token payload.
    """

    username_field = "identifier"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields.pop(self.username_field, None)
        self.fields["identifier"] = serializers.CharField(
            help_text="Username, Phone Number, or Email.",
        )

    @classmethod
    def get_token(cls, user) -> Any:
        token = super().get_token(user)

        token["role"] = user.role.name if user.role else None
        token["hierarchy_level"] = user.hierarchy_level
        token["permissions_list"] = user.permissions_list
        officer = getattr(user, "officer_profile", None)
        token["officer_rank"] = officer.rank if officer else None

        return token

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        """
        Authenticate using ``MultiFieldAuthBackend``.

        Returns a dict containing ``access`` and ``refresh``; the
        authenticated user is left on ``self.user`` for the view.
        """
        user = authenticate(
            request=self.context.get("request"),
            identifier=attrs.get("identifier"),
            password=attrs.get("password"),
        )

        if user is None:
            raise serializers.ValidationError(
                {"detail": "Invalid credentials."},
                code="authentication",
            )

        if not user.is_active:
            raise serializers.ValidationError(
                {"detail": "User account is disabled."},
                code="authentication",
            )

        refresh = self.get_token(user)
        self.user = user
        return {
            "access": str(refresh.access_token),
            "refresh": str(refresh),
        }


class TokenResponseSerializer(serializers.Serializer):
    """Schema of the login response (token pair plus nested user)."""

    access = serializers.CharField(read_only=True)
    refresh = serializers.CharField(read_only=True)
    user = serializers.DictField(read_only=True)


class LogoutRequestSerializer(serializers.Serializer):
    refresh = serializers.CharField(
        required=False,
        allow_blank=True,
        help_text="Refresh token being discarded by the client (optional).",
    )


# ═══════════════════════════════════════════════════════════════════
#  Role & User Serializers
# ═══════════════════════════════════════════════════════════════════


class RoleListSerializer(serializers.ModelSerializer):
    """Lightweight role representation (no permissions detail)."""

    class Meta:
        model = Role
        fields = ["id", "name", "description", "hierarchy_level"]
        read_only_fields = ["id"]


class OfficerSerializer(serializers.ModelSerializer):
    """Officer profile as exposed by ``officers/{uid}``."""

    uid = serializers.IntegerField(source="user_id", read_only=True)
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = Officer
        fields = [
            "uid",
            "display_name",
            "rank",
            "status",
            "badge_number",
            "jurisdiction_id",
            "last_token_update",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class UserDetailSerializer(serializers.ModelSerializer):
    """
    Full user representation (``me`` and role assignment responses).

    ``permissions`` is a read-only flat list such as
    ``['reports.can_validate_report', 'reports.view_report', ...]``.
    """

    role_detail = RoleListSerializer(source="role", read_only=True)
    permissions = serializers.ListField(
        child=serializers.CharField(),
        source="permissions_list",
        read_only=True,
        help_text="Flat list of 'app_label.codename' permission strings.",
    )
    officer = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "phone_number",
            "first_name",
            "last_name",
            "is_active",
            "date_joined",
            "role",
            "role_detail",
            "permissions",
            "officer",
        ]
        read_only_fields = fields

    def get_officer(self, obj) -> dict | None:
        try:
            return OfficerSerializer(obj.officer_profile).data
        except Officer.DoesNotExist:
            return None


class AssignRoleSerializer(serializers.Serializer):
    """Accepts a ``role_id`` to assign to a user."""

    role_id = serializers.IntegerField(
        help_text="PK of the Role to assign to this user.",
    )

    def validate_role_id(self, value: int) -> int:
        if not Role.objects.filter(pk=value).exists():
            raise serializers.ValidationError(
                f"Role with id {value} does not exist."
            )
        return value


# ═══════════════════════════════════════════════════════════════════
#  Officer Serializers
# ═══════════════════════════════════════════════════════════════════


class OfficerStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OfficerStatus.choices)


class PushTokenSerializer(serializers.Serializer):
    push_token = serializers.CharField(max_length=255)


class DailyCountSerializer(serializers.Serializer):
    label = serializers.CharField(help_text="MM-DD")
    count = serializers.IntegerField()


class OfficerMetricsSerializer(serializers.Serializer):
    """
    Workload metrics for one officer.

    Example::

        {
            "officer_id": 7,
            "period_days": 30,
            "assigned_in_period": 12,
            "open_count": 2,
            "resolved_count": 9,
            "average_resolution_hours": 5.4,
            "daily_assigned_last_7": [{"label": "10-13", "count": 1}, ...]
        }
    """

    officer_id = serializers.IntegerField()
    period_days = serializers.IntegerField()
    assigned_in_period = serializers.IntegerField()
    open_count = serializers.IntegerField()
    resolved_count = serializers.IntegerField()
    average_resolution_hours = serializers.FloatField(allow_null=True)
    daily_assigned_last_7 = DailyCountSerializer(many=True)
