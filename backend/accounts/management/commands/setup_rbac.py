"""
Management command: setup_rbac
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Seeds the database with base **Roles** and links each role to its
set of Django permissions.

This command does **not** create Permission objects.  Standard CRUD
permissions are created by Django after ``migrate``; custom workflow
permissions come from each model's ``Meta.permissions``.

The command is **idempotent**: existing roles are updated and their
permissions replaced to match the mapping below.

Usage::

    python manage.py setup_rbac
"""

from django.contrib.auth.models import Permission
from django.core.management.base import BaseCommand

from accounts.models import Role
from core.permissions_constants import AccountsPerms, CorePerms, ReportsPerms, perm

_A = AccountsPerms.APP_LABEL
_R = ReportsPerms.APP_LABEL
_C = CorePerms.APP_LABEL

# ────────────────────────────────────────────────────────────────────
# Role → Permission mapping  (uses constants, zero hard-coded strings)
# ────────────────────────────────────────────────────────────────────
# Key:   (role_name, description, hierarchy_level)
# Value: list of ``app_label.codename`` strings

_OFFICER_PERMS = [
    perm(_R, ReportsPerms.VIEW_REPORT),
    perm(_R, ReportsPerms.CAN_HANDLE_ASSIGNMENT),
    perm(_R, ReportsPerms.CAN_ADD_OFFICER_NOTE),
    perm(_R, ReportsPerms.CAN_ADD_EVIDENCE),
    perm(_R, ReportsPerms.CAN_SCOPE_ASSIGNED_REPORTS),
    perm(_C, CorePerms.VIEW_INBOXNOTIFICATION),
]

_DESK_PERMS = [
    perm(_R, ReportsPerms.VIEW_REPORT),
    perm(_R, ReportsPerms.CAN_VALIDATE_REPORT),
    perm(_R, ReportsPerms.CAN_ASSIGN_REPORT),
    perm(_R, ReportsPerms.CAN_CHANGE_PRIORITY),
    perm(_R, ReportsPerms.CAN_COMMENT_ON_REPORT),
    perm(_R, ReportsPerms.CAN_SCOPE_ALL_REPORTS),
    perm(_R, ReportsPerms.VIEW_BLOTTERCOUNTER),
    perm(_A, AccountsPerms.VIEW_OFFICER),
    perm(_C, CorePerms.VIEW_INBOXNOTIFICATION),
]

_SUPERVISOR_PERMS = _DESK_PERMS + [
    perm(_R, ReportsPerms.CAN_SUPERVISE_REPORTS),
    perm(_R, ReportsPerms.CAN_ADD_OFFICER_NOTE),
    perm(_R, ReportsPerms.CAN_ADD_EVIDENCE),
    perm(_A, AccountsPerms.CAN_MANAGE_OFFICERS),
    perm(_A, AccountsPerms.CAN_VIEW_OFFICER_METRICS),
    perm(_C, CorePerms.CAN_VIEW_AUDIT_LOG),
]

ROLE_PERMISSIONS_MAP: dict[tuple[str, str, int], list[str]] = {

    # ── System Administrator ────────────────────────────────────────
    (
        "System Admin",
        "Full console access: users, roles, reports and the audit trail.",
        100,
    ): _SUPERVISOR_PERMS + [
        perm(_A, AccountsPerms.VIEW_ROLE), perm(_A, AccountsPerms.ADD_ROLE),
        perm(_A, AccountsPerms.CHANGE_ROLE), perm(_A, AccountsPerms.DELETE_ROLE),
        perm(_A, AccountsPerms.VIEW_USER), perm(_A, AccountsPerms.ADD_USER),
        perm(_A, AccountsPerms.CHANGE_USER), perm(_A, AccountsPerms.DELETE_USER),
        perm(_A, AccountsPerms.CHANGE_OFFICER),
        perm(_A, AccountsPerms.CAN_MANAGE_USERS),
        perm(_A, AccountsPerms.CAN_ADMINISTER_SYSTEM),
        perm(_R, ReportsPerms.CHANGE_REPORT), perm(_R, ReportsPerms.DELETE_REPORT),
        perm(_C, CorePerms.VIEW_AUDITLOG),
    ],

    # ── Supervisor ──────────────────────────────────────────────────
    (
        "Supervisor",
        "Oversees officers: reassignment, closure review, duty status.",
        50,
    ): _SUPERVISOR_PERMS,

    # ── Desk Officer ────────────────────────────────────────────────
    (
        "Desk Officer",
        "Validates incoming reports, issues blotter numbers, assigns officers.",
        30,
    ): _DESK_PERMS,

    # ── Officer ─────────────────────────────────────────────────────
    (
        "Officer",
        "Field officer: accepts, declines and resolves assignments.",
        20,
    ): _OFFICER_PERMS,

    # ── Citizen ─────────────────────────────────────────────────────
    (
        "Citizen",
        "Files reports and follows their progress.",
        1,
    ): [
        perm(_R, ReportsPerms.VIEW_REPORT),
        perm(_R, ReportsPerms.CAN_SCOPE_OWN_REPORTS),
        perm(_C, CorePerms.VIEW_INBOXNOTIFICATION),
    ],
}


def seed_roles(stdout=None, style=None) -> dict[str, int]:
    """
    Create/update every role in ``ROLE_PERMISSIONS_MAP``.

    Returns ``{"created": n, "updated": n, "warnings": n}``.
    """
    all_permissions: dict[str, Permission] = {
        f"{p.content_type.app_label}.{p.codename}": p
        for p in Permission.objects.select_related("content_type").all()
    }
    stats = {"created": 0, "updated": 0, "warnings": 0}

    for (role_name, description, hierarchy_level), perm_names in ROLE_PERMISSIONS_MAP.items():
        role, created = Role.objects.get_or_create(
            name=role_name,
            defaults={
                "description": description,
                "hierarchy_level": hierarchy_level,
            },
        )
        if not created and (
            role.description != description or role.hierarchy_level != hierarchy_level
        ):
            role.description = description
            role.hierarchy_level = hierarchy_level
            role.save(update_fields=["description", "hierarchy_level"])

        resolved: list[Permission] = []
        for name in dict.fromkeys(perm_names):
            permission = all_permissions.get(name)
            if permission is None:
                stats["warnings"] += 1
                if stdout is not None:
                    stdout.write(style.WARNING(
                        f"  ⚠  Permission '{name}' not found, skipped for role "
                        f"'{role_name}'.  (Run migrate first?)"
                    ))
                continue
            resolved.append(permission)

        role.permissions.set(resolved)
        stats["created" if created else "updated"] += 1

        if stdout is not None:
            action = "Created" if created else "Updated"
            stdout.write(style.SUCCESS(
                f"  ✔  {action} role: {role_name:<14s} "
                f"(hierarchy={hierarchy_level}, permissions={len(resolved)})"
            ))
    return stats


class Command(BaseCommand):
    help = (
        "Seeds the database with base Roles and maps each role to its "
        "Django permissions.  Safe to run multiple times (idempotent).  "
        "Does NOT create permissions; run `migrate` first."
    )

    def handle(self, *args, **options):
        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n══════════════════════════════════════════"
            "\n  RBAC Setup — Seeding Roles & Permissions"
            "\n══════════════════════════════════════════\n"
        ))

        stats = seed_roles(self.stdout, self.style)

        summary = (
            f"  Done!  {stats['created']} role(s) created, "
            f"{stats['updated']} role(s) updated."
        )
        if stats["warnings"]:
            summary += f"  ({stats['warnings']} permission warning(s), see above.)"
        self.stdout.write(self.style.SUCCESS(summary + "\n"))
