"""
Accounts Service Layer.

This module is the **single source of truth** for all business logic
within the ``accounts`` app.  Views must remain *thin*: they validate
input through serializers, call a service method, and return the
result wrapped in a DRF ``Response``.

Architecture
------------
- ``SessionAuditService``    — admin console login / logout audit entries.
- ``UserManagementService``  — role assignment (audited).
- ``OfficerService``         — officer lookup, duty status, push token,
                               assignment pool and supervisor roster.
- ``OfficerMetricsService``  — cached per-officer workload analytics.
- ``CurrentUserService``     — "Me" endpoint helpers.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from django.apps import apps
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from core.constants import OFFICER_METRICS_PERIOD_DAYS, workflow_setting
from core.domain.access import get_user_role_name, require_permission
from core.domain.audit import (
    AccountStatusDetails,
    AuditService,
    RoleChangeDetails,
    SessionDetails,
)
from core.domain.cache import CachePort, DjangoCachePort
from core.domain.exceptions import DomainError, NotFound, PermissionDenied
from core.domain.transactions import lock_for_update
from core.models import AuditAction, AuditTargetType
from core.permissions_constants import AccountsPerms, perm

from .models import Officer, OfficerRank, OfficerStatus, Role

User = get_user_model()

logger = logging.getLogger(__name__)

_ADMIN_PERM = perm(AccountsPerms.APP_LABEL, AccountsPerms.CAN_ADMINISTER_SYSTEM)


# ═══════════════════════════════════════════════════════════════════
#  Session Audit Service
# ═══════════════════════════════════════════════════════════════════


class SessionAuditService:
    """
    Records ``admin_login`` / ``admin_logout`` audit entries for users
    holding the system-administration permission.  Other users' sessions
    are not audited.
    """

    @staticmethod
    def _record(user: User, action: str) -> bool:
        if not user.has_perm(_ADMIN_PERM):
            return False
        outcome = AuditService.record(
            user,
            action,
            AuditTargetType.SYSTEM,
            user.pk,
            SessionDetails(username=user.username, role=get_user_role_name(user) or ""),
        )
        return outcome.ok

    @staticmethod
    def record_login(user: User) -> bool:
        """Audit a console login; returns whether an entry was written."""
        return SessionAuditService._record(user, AuditAction.ADMIN_LOGIN)

    @staticmethod
    def record_logout(user: User) -> bool:
        """Audit a console logout; returns whether an entry was written."""
        return SessionAuditService._record(user, AuditAction.ADMIN_LOGOUT)


# ═══════════════════════════════════════════════════════════════════
#  User Management Service
# ═══════════════════════════════════════════════════════════════════


class UserManagementService:
    """Administrative operations on users."""

    @staticmethod
    def assign_role(
        *,
        user_id: int,
        role_id: int,
        performed_by: User,
    ) -> User:
        """
        Assign (or change) a user's role.

        Parameters
        ----------
        user_id : int
            PK of the target user.
        role_id : int
            PK of the ``Role`` to assign.
        performed_by : User
            The requesting user; must hold ``accounts.can_manage_users``.

        Returns
        -------
        User
            The updated user, with its permission cache cleared.

        Raises
        ------
        PermissionDenied
            If the requester lacks the permission, or tries to grant a
            role above their own hierarchy level.
        NotFound
            If the user or role does not exist.
        """
        require_permission(
            performed_by,
            perm(AccountsPerms.APP_LABEL, AccountsPerms.CAN_MANAGE_USERS),
        )

        try:
            new_role = Role.objects.get(pk=role_id)
        except Role.DoesNotExist:
            raise NotFound(f"Role with id {role_id} not found.")

        if not performed_by.is_superuser and new_role.hierarchy_level > performed_by.hierarchy_level:
            raise PermissionDenied("You cannot grant a role above your own.")

        with transaction.atomic():
            target_user = lock_for_update(User, user_id, label="User")
            old_role_name = target_user.role.name if target_user.role_id else ""
            target_user.role = new_role
            target_user.save(update_fields=["role"])

        target_user.clear_permission_cache()
        AuditService.record(
            performed_by,
            AuditAction.USER_ROLE_CHANGE,
            AuditTargetType.USER,
            target_user.pk,
            RoleChangeDetails(old_role=old_role_name, new_role=new_role.name),
        )
        logger.info(
            "User %s role changed %r -> %r by %s",
            target_user.pk, old_role_name, new_role.name, performed_by.pk,
        )
        return target_user


# ═══════════════════════════════════════════════════════════════════
#  Officer Service
# ═══════════════════════════════════════════════════════════════════


class OfficerService:
    """Officer profile reads and duty-status changes."""

    @staticmethod
    def get_officer(officer_id: Any) -> Officer:
        try:
            return Officer.objects.select_related("user").get(pk=officer_id)
        except (Officer.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Officer {officer_id} not found.")

    @staticmethod
    def assignment_pool() -> QuerySet[Officer]:
        """All officer profiles; eligibility filtering is the picker's job."""
        return Officer.objects.select_related("user").filter(user__is_active=True)

    @staticmethod
    def active_supervisors() -> QuerySet[Officer]:
        return Officer.objects.filter(
            rank=OfficerRank.SUPERVISOR,
            status=OfficerStatus.ACTIVE,
            user__is_active=True,
        )

    @staticmethod
    def set_status(officer_id: Any, new_status: str, performed_by: User) -> Officer:
        """
        Change an officer's duty status and audit ``user_status_change``.

        Raises
        ------
        PermissionDenied
            Without ``accounts.can_manage_officers``.
        DomainError
            If ``new_status`` is not a known ``OfficerStatus``.
        """
        require_permission(
            performed_by,
            perm(AccountsPerms.APP_LABEL, AccountsPerms.CAN_MANAGE_OFFICERS),
        )
        if new_status not in OfficerStatus.values:
            raise DomainError(f"Unknown officer status '{new_status}'.")

        with transaction.atomic():
            officer = lock_for_update(Officer, officer_id, label="Officer")
            old_status = officer.status
            if old_status != new_status:
                officer.status = new_status
                officer.save(update_fields=["status", "updated_at"])

        if old_status != new_status:
            AuditService.record(
                performed_by,
                AuditAction.USER_STATUS_CHANGE,
                AuditTargetType.USER,
                officer.pk,
                AccountStatusDetails(old_status=old_status, new_status=new_status),
            )
            logger.info("Officer %s status %s -> %s", officer.pk, old_status, new_status)
        return officer

    @staticmethod
    def update_push_token(officer_id: Any, token: str, performed_by: User) -> Officer:
        """Store the officer's device push token.  Only the officer may do this."""
        if str(performed_by.pk) != str(officer_id):
            raise PermissionDenied("Officers may only register their own push token.")

        with transaction.atomic():
            officer = lock_for_update(Officer, officer_id, label="Officer")
            officer.push_token = token
            officer.last_token_update = timezone.now()
            officer.save(update_fields=["push_token", "last_token_update", "updated_at"])
        return officer


# ═══════════════════════════════════════════════════════════════════
#  Officer Metrics Service
# ═══════════════════════════════════════════════════════════════════


class OfficerMetricsService:
    """
    Per-officer workload analytics for the supervisor dashboard.

    Results are memoised through an injected ``CachePort`` for
    ``OFFICER_METRICS_CACHE_TTL_SECONDS``.  The assignment picker never
    uses these numbers; it recomputes workloads on every pick.
    """

    def __init__(self, cache: CachePort | None = None) -> None:
        self.cache = cache or DjangoCachePort()

    def get_metrics(self, officer_id: Any, requested_by: User, *, now=None) -> dict[str, Any]:
        """
        Return workload metrics for one officer.

        Officers may read their own metrics; anyone else needs
        ``accounts.can_view_officer_metrics``.
        """
        if str(requested_by.pk) != str(officer_id):
            require_permission(
                requested_by,
                perm(AccountsPerms.APP_LABEL, AccountsPerms.CAN_VIEW_OFFICER_METRICS),
            )
        officer = OfficerService.get_officer(officer_id)

        key = f"officer-metrics:{officer.pk}"
        cached, found = self.cache.get(key)
        if found:
            return cached

        metrics = self.compute(officer.pk, now=now)
        self.cache.put(key, metrics, workflow_setting("OFFICER_METRICS_CACHE_TTL_SECONDS"))
        return metrics

    @staticmethod
    def compute(officer_id: Any, *, now=None) -> dict[str, Any]:
        """Aggregate the officer's current and past reports."""
        Report = apps.get_model("reports", "Report")
        from reports.models import OPEN_STATUSES, ReportStatus

        now = now or timezone.now()
        period_start = now - timedelta(days=OFFICER_METRICS_PERIOD_DAYS)
        today = timezone.localdate(now)
        daily = {today - timedelta(days=offset): 0 for offset in range(6, -1, -1)}

        rows = (
            Report.objects
            .filter(Q(assigned_officer_id=officer_id) | Q(handled_by_id=officer_id))
            .values("status", "created_at", "updated_at", "closure_reviewed_at")
        )

        assigned_in_period = open_count = resolved_count = 0
        durations: list[float] = []
        for row in rows:
            created_at = row["created_at"]
            if created_at >= period_start:
                assigned_in_period += 1
            if row["status"] == ReportStatus.RESOLVED:
                resolved_count += 1
                ended_at = row["closure_reviewed_at"] or row["updated_at"]
                seconds = (ended_at - created_at).total_seconds()
                if seconds > 0:
                    durations.append(seconds)
            elif row["status"] in OPEN_STATUSES:
                open_count += 1
            day = timezone.localdate(created_at)
            if day in daily:
                daily[day] += 1

        average_hours = (
            round(sum(durations) / len(durations) / 3600, 1) if durations else None
        )
        return {
            "officer_id": officer_id,
            "period_days": OFFICER_METRICS_PERIOD_DAYS,
            "assigned_in_period": assigned_in_period,
            "open_count": open_count,
            "resolved_count": resolved_count,
            "average_resolution_hours": average_hours,
            "daily_assigned_last_7": [
                {"label": day.strftime("%m-%d"), "count": count}
                for day, count in daily.items()
            ],
        }


# ═══════════════════════════════════════════════════════════════════
#  Current User Service
# ═══════════════════════════════════════════════════════════════════


class CurrentUserService:
    """Helpers for the "Me" endpoint."""

    @staticmethod
    def get_profile(user: User) -> User:
        """
        Return the user with role, permissions and officer profile
        pre-fetched so ``UserDetailSerializer`` renders without N+1
        queries.
        """
        return (
            User.objects.select_related("role", "officer_profile")
            .prefetch_related("role__permissions__content_type")
            .get(pk=user.pk)
        )
