"""
Permissions Constants — **Single Source of Truth**

Every permission referenced in code (state-machine edges, views,
``setup_rbac``, scope rules) MUST use one of the constants defined here.

Organisation
------------
- **Standard CRUD** permissions follow Django's auto-generated naming:
  ``<action>_<model_lowercase>``. They are listed here for reference so
  that the ``setup_rbac`` command can map them to roles without typos.

- **Custom workflow** permissions are constants that map to codenames
  registered via each model's ``Meta.permissions`` tuple. Adding a new
  custom permission requires:
    1. Add the constant below.
    2. Add the ``(codename, description)`` to the related model's
       ``Meta.permissions``.
    3. Run ``makemigrations`` + ``migrate`` to insert it into Django's
       ``auth_permission`` table.
    4. Add the constant to the appropriate role lists in ``setup_rbac``.

All constants store the **codename only** (no ``app_label.`` prefix);
use ``perm()`` when a full ``app_label.codename`` string is needed for
``user.has_perm``.
"""


def perm(app_label: str, codename: str) -> str:
    """Return the ``app_label.codename`` form expected by ``has_perm``."""
    return f"{app_label}.{codename}"


# ════════════════════════════════════════════════════════════════════
#  ACCOUNTS APP — Standard CRUD + Custom Workflow
# ════════════════════════════════════════════════════════════════════

class AccountsPerms:
    """Standard CRUD permissions for accounts models."""

    APP_LABEL = "accounts"

    # Role
    VIEW_ROLE = "view_role"
    ADD_ROLE = "add_role"
    CHANGE_ROLE = "change_role"
    DELETE_ROLE = "delete_role"

    # User
    VIEW_USER = "view_user"
    ADD_USER = "add_user"
    CHANGE_USER = "change_user"
    DELETE_USER = "delete_user"

    # Officer
    VIEW_OFFICER = "view_officer"
    CHANGE_OFFICER = "change_officer"

    # ── Custom workflow permissions ─────────────────────────────────
    CAN_MANAGE_USERS = "can_manage_users"
    """Admin-level user management (assign roles)."""

    CAN_MANAGE_OFFICERS = "can_manage_officers"
    """Activate, deactivate or suspend officers."""

    CAN_VIEW_OFFICER_METRICS = "can_view_officer_metrics"
    """Read per-officer workload analytics."""

    CAN_ADMINISTER_SYSTEM = "can_administer_system"
    """Marks the admin console roles (login/logout are audited)."""


# ════════════════════════════════════════════════════════════════════
#  REPORTS APP — Standard CRUD + Custom Workflow
# ════════════════════════════════════════════════════════════════════

class ReportsPerms:
    """Standard + custom permissions for the reports app."""

    APP_LABEL = "reports"

    # ── Report — standard CRUD ──────────────────────────────────────
    VIEW_REPORT = "view_report"
    ADD_REPORT = "add_report"
    CHANGE_REPORT = "change_report"
    DELETE_REPORT = "delete_report"

    # ── BlotterCounter — standard CRUD ──────────────────────────────
    VIEW_BLOTTERCOUNTER = "view_blottercounter"

    # ── Custom workflow permissions ─────────────────────────────────
    CAN_VALIDATE_REPORT = "can_validate_report"
    """Desk officer validates or rejects incoming reports (issues blotter numbers)."""

    CAN_ASSIGN_REPORT = "can_assign_report"
    """Assign a validated report to an officer (manual or automatic)."""

    CAN_HANDLE_ASSIGNMENT = "can_handle_assignment"
    """Officer accepts/declines assignments and moves them to resolution."""

    CAN_SUPERVISE_REPORTS = "can_supervise_reports"
    """Supervisor overrides: reassign, closure review, reject in-flight cases."""

    CAN_CHANGE_PRIORITY = "can_change_priority"
    """Change the priority of a report."""

    CAN_COMMENT_ON_REPORT = "can_comment_on_report"
    """Add an administrative comment to a report."""

    CAN_ADD_OFFICER_NOTE = "can_add_officer_note"
    """Add a field note to a report."""

    CAN_ADD_EVIDENCE = "can_add_evidence"
    """Attach an evidence media reference to a report."""

    # ── Scope permissions (data-visibility tiers) ───────────────────
    CAN_SCOPE_ALL_REPORTS = "can_scope_all_reports"
    """Unrestricted report visibility (Admin, Supervisor, Desk Officer)."""

    CAN_SCOPE_ASSIGNED_REPORTS = "can_scope_assigned_reports"
    """See reports assigned to (or handled by) this officer."""

    CAN_SCOPE_OWN_REPORTS = "can_scope_own_reports"
    """See only reports the user filed."""


# ════════════════════════════════════════════════════════════════════
#  CORE APP — Standard CRUD + Custom
# ════════════════════════════════════════════════════════════════════

class CorePerms:
    """Standard + custom permissions for core models."""

    APP_LABEL = "core"

    # ── AuditLog — standard CRUD (add only; never change/delete) ────
    VIEW_AUDITLOG = "view_auditlog"

    # ── InboxNotification — standard CRUD ───────────────────────────
    VIEW_INBOXNOTIFICATION = "view_inboxnotification"

    # ── Custom permissions ──────────────────────────────────────────
    CAN_VIEW_AUDIT_LOG = "can_view_audit_log"
    """Read the append-only audit trail."""
