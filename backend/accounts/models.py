"""
Accounts app models.

Defines the dynamic Role system, a custom User model that extends
Django's ``AbstractUser``, and the ``Officer`` profile carried by every
law-enforcement user (rank, duty status, jurisdiction and push token).
"""

from django.contrib.auth.models import AbstractUser, Permission
from django.db import models

from core.models import TimeStampedModel
from core.permissions_constants import AccountsPerms


class Role(models.Model):
    """
    Dynamic, admin-manageable role.

    Roles can be created, modified, or deleted at runtime by the System
    Administrator; no code changes required.  ``hierarchy_level`` encodes
    relative authority (System Admin > Supervisor > Desk Officer >
    Officer > Citizen).

    Default roles are seeded by the ``setup_rbac`` management command,
    which links the permissions declared in ``core.permissions_constants``
    (and registered through each model's ``Meta.permissions``) to roles.
    It never creates permissions itself.
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        verbose_name="Role Name",
    )
    description = models.TextField(
        blank=True,
        default="",
        verbose_name="Description",
    )
    hierarchy_level = models.PositiveSmallIntegerField(
        default=0,
        verbose_name="Hierarchy Level",
        help_text="Higher value = more authority (e.g. System Admin=10, Citizen=1).",
    )
    permissions = models.ManyToManyField(
        Permission,
        blank=True,
        verbose_name="Permissions",
        help_text="Specific permissions for this role.",
    )

    class Meta:
        verbose_name = "Role"
        verbose_name_plural = "Roles"
        ordering = ["-hierarchy_level"]

    def __str__(self):
        return self.name


class User(AbstractUser):
    """
    Custom user model shared by citizens, desk officers, officers,
    supervisors and administrators.

    Login is supported via *any one* of username / phone_number / email
    together with the password (see ``accounts.backends``).

    Each user holds exactly **one** role at a time (FK to ``Role``).
    """

    phone_number = models.CharField(
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        verbose_name="Phone Number",
        db_index=True,
    )
    email = models.EmailField(
        unique=True,
        verbose_name="Email Address",
    )

    # ── Single-role assignment (dynamic RBAC) ────────────────────────
    role = models.ForeignKey(
        Role,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="users",
        verbose_name="Assigned Role",
    )

    REQUIRED_FIELDS = ["email"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        permissions = [
            (AccountsPerms.CAN_MANAGE_USERS, "Admin-level user management"),
            (AccountsPerms.CAN_ADMINISTER_SYSTEM, "Administer the system console"),
        ]

    def __str__(self):
        role_name = self.role.name if self.role else "No Role"
        return f"{self.username} - {role_name}"

    @property
    def hierarchy_level(self) -> int:
        """Return the hierarchy_level of the user's role (0 if none)."""
        return self.role.hierarchy_level if self.role else 0

    # ── RBAC Permission Overrides ────────────────────────────────────

    def get_all_permissions(self, obj=None) -> set:
        """
        Return a set of permission strings ('app_label.codename') the user has.
        """
        if not self.is_active:
            return set()

        if self.is_superuser:
            if not hasattr(self, "_superuser_perm_cache"):
                perms = Permission.objects.select_related("content_type").all()
                self._superuser_perm_cache = {f"{p.content_type.app_label}.{p.codename}" for p in perms}
            return self._superuser_perm_cache

        if not self.role:
            return set()

        if not hasattr(self, "_perm_cache"):
            perms = self.role.permissions.select_related("content_type")
            self._perm_cache = {f"{p.content_type.app_label}.{p.codename}" for p in perms}

        return self._perm_cache

    def has_perm(self, perm: str, obj=None) -> bool:
        """
        Superusers always have all permissions; otherwise the assigned
        role must carry the permission.
        """
        if self.is_active and self.is_superuser:
            return True

        return perm in self.get_all_permissions(obj)

    def has_perms(self, perm_list, obj=None) -> bool:
        return all(self.has_perm(perm, obj) for perm in perm_list)

    def has_module_perms(self, app_label: str) -> bool:
        if self.is_active and self.is_superuser:
            return True

        return any(perm.startswith(f"{app_label}.") for perm in self.get_all_permissions())

    def clear_permission_cache(self) -> None:
        """Forget cached permissions (after a role change)."""
        for attr in ("_perm_cache", "_superuser_perm_cache"):
            if hasattr(self, attr):
                delattr(self, attr)

    @property
    def permissions_list(self) -> list[str]:
        """Flat list of permission strings, for the frontend's dynamic UI."""
        return sorted(self.get_all_permissions())


class OfficerRank(models.TextChoices):
    OFFICER = "officer", "Officer"
    SUPERVISOR = "supervisor", "Supervisor"


class OfficerStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    SUSPENDED = "suspended", "Suspended"


class Officer(TimeStampedModel):
    """
    Law-enforcement profile attached one-to-one to a ``User``.

    Only officers with ``rank=officer`` and ``status=active`` are
    eligible for assignment.  Supervisors receive decline alerts.
    """

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="officer_profile",
        verbose_name="User",
    )
    rank = models.CharField(
        max_length=12,
        choices=OfficerRank.choices,
        default=OfficerRank.OFFICER,
        verbose_name="Rank",
    )
    status = models.CharField(
        max_length=12,
        choices=OfficerStatus.choices,
        default=OfficerStatus.ACTIVE,
        db_index=True,
        verbose_name="Duty Status",
    )
    badge_number = models.CharField(
        max_length=20,
        blank=True,
        default="",
        verbose_name="Badge Number",
    )
    jurisdiction_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        db_index=True,
        verbose_name="Jurisdiction",
    )
    push_token = models.CharField(
        max_length=255,
        blank=True,
        default="",
        verbose_name="Push Token",
    )
    last_token_update = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Push Token Updated At",
    )

    class Meta:
        verbose_name = "Officer"
        verbose_name_plural = "Officers"
        ordering = ["user_id"]
        permissions = [
            (AccountsPerms.CAN_MANAGE_OFFICERS, "Change officer duty status"),
            (AccountsPerms.CAN_VIEW_OFFICER_METRICS, "View officer workload metrics"),
        ]

    def __str__(self):
        return f"{self.user.get_full_name() or self.user.username} ({self.rank}, {self.status})"

    @property
    def uid(self):
        return self.user_id

    @property
    def display_name(self) -> str:
        return self.user.get_full_name() or self.user.username
