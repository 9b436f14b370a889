"""
core.domain.access — Permission checks and permission-scoped querysets.

Each app's service layer owns its own scope-rule list; this module only
provides the shared dispatch:

1) ``apply_permission_scope`` — ordered permission → queryset filter.
2) ``require_permission`` / ``has_any_permission`` — OR-logic guards.
3) ``get_user_role_name`` — informational role-name helper.

Usage in an app's service layer::

    from core.domain.access import apply_permission_scope

    REPORT_SCOPE_RULES = [
        ("reports.can_scope_all_reports",      lambda qs, u: qs),
        ("reports.can_scope_assigned_reports", lambda qs, u: qs.filter(assigned_officer_id=u.pk)),
        ("reports.can_scope_own_reports",      lambda qs, u: qs.filter(reporter=u)),
    ]

    qs = apply_permission_scope(Report.objects.all(), user, scope_rules=REPORT_SCOPE_RULES)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterable

from django.db.models import QuerySet

from core.domain.exceptions import PermissionDenied

if TYPE_CHECKING:
    from accounts.models import User

# Takes (queryset, user) and returns a filtered queryset.
ScopeFilter = Callable[[QuerySet, "User"], QuerySet]

# (``app_label.codename``, filter_fn)
ScopeRule = tuple[str, ScopeFilter]


def get_user_role_name(user: User) -> str | None:
    """
    Return the lowercased role name for a user, or ``None`` if unassigned.

    Informational only (JWT claims, API responses, audit details).
    Access control uses ``user.has_perm()``, never role names.
    """
    if user is None:
        return None
    if user.is_superuser:
        return "system_admin"
    role = getattr(user, "role", None)
    if role is None:
        return None
    return role.name.lower().replace(" ", "_")


def has_any_permission(user: User | None, perms: Iterable[str]) -> bool:
    """True when ``user`` holds at least one of ``perms``."""
    if user is None or not getattr(user, "is_active", False):
        return False
    return any(user.has_perm(p) for p in perms)


def apply_permission_scope(
    queryset: QuerySet,
    user: User,
    *,
    scope_rules: list[ScopeRule],
    default: str = "none",
) -> QuerySet:
    """
    Apply the first matching permission-based scope rule.

    Rules are checked **in order**; order them from broadest to narrowest.

    Args:
        queryset:     Base (unfiltered) queryset.
        user:         The authenticated user.
        scope_rules:  Ordered list of ``(perm, filter_fn)`` tuples.
        default:      ``"none"`` → empty queryset when nothing matches,
                      ``"all"`` → unfiltered.
    """
    for perm, filter_fn in scope_rules:
        if user.has_perm(perm):
            return filter_fn(queryset, user)

    if default == "none":
        return queryset.none()
    return queryset


def require_permission(user: User, *perms: str, message: str = "") -> None:
    """
    Raise ``PermissionDenied`` unless the user holds at least one of
    ``perms`` (full ``app.codename`` strings).

    Example::

        require_permission(user, perm(ReportsPerms.APP_LABEL, ReportsPerms.CAN_CHANGE_PRIORITY))
    """
    if has_any_permission(user, perms):
        return
    raise PermissionDenied(
        message or f"Missing required permission: {', '.join(perms)}."
    )
