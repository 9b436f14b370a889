"""
Core app URL configuration.

Provides the dashboard, system constants, the user's inbox and the
audit-log reader.

URL prefix (registered in ``backend/urls.py``)::

    path('api/core/', include('core.urls'))

Endpoint summary
----------------
GET  /api/core/dashboard/                        — Report statistics (scoped).
GET  /api/core/constants/                        — Choice enumerations for frontend dropdowns.
GET  /api/core/notifications/                    — Inbox of the authenticated user.
POST /api/core/notifications/{id}/delivered/     — Flip ``delivered``.
POST /api/core/notifications/{id}/seen/          — Flip ``seen``.
GET  /api/core/audit-logs/                       — Audit trail (``can_view_audit_log``).
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

app_name = "core"

# ── Router for ViewSet-based endpoints ───────────────────────────────
router = DefaultRouter()
router.register(
    prefix=r"notifications",
    viewset=views.NotificationViewSet,
    basename="notification",
)
router.register(
    prefix=r"audit-logs",
    viewset=views.AuditLogViewSet,
    basename="audit-log",
)

urlpatterns = [
    # ── Dashboard ────────────────────────────────────────────────────
    path(
        "dashboard/",
        views.DashboardStatsView.as_view(),
        name="dashboard-stats",
    ),

    # ── System Constants / Enums ─────────────────────────────────────
    path(
        "constants/",
        views.SystemConstantsView.as_view(),
        name="system-constants",
    ),

    # ── Notifications & audit log (router-generated URLs) ────────────
    path("", include(router.urls)),
]
