"""
Reports app URL configuration.

All routes are registered under the ``/api/reports/`` prefix.

Route Hierarchy
---------------
  /api/reports/                               → list
  /api/reports/{id}/                          → retrieve / destroy
  GET  /api/reports/{id}/audit-log/           → audit trail for the report

  ── Workflow @actions (resource-level RPC) ──────────────────────
  POST /api/reports/{id}/validate/            → desk officer validates (+ optional assign)
  POST /api/reports/{id}/assign/              → manual or automatic assignment
  POST /api/reports/{id}/transition/          → generic status change
  POST /api/reports/{id}/accept/              → officer accepts
  POST /api/reports/{id}/decline/             → officer declines
  POST /api/reports/{id}/priority/
  POST /api/reports/{id}/notes/
  POST /api/reports/{id}/comments/
  POST /api/reports/{id}/evidence/

  ── Supervisor @actions ─────────────────────────────────────────
  POST /api/reports/{id}/reassign/
  POST /api/reports/{id}/approve-closure/
  POST /api/reports/{id}/reject-closure/
  POST /api/reports/{id}/notify-officer/      → message the assigned officer

  ── Counters ────────────────────────────────────────────────────
  GET  /api/reports/counters/{period_key}/
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import BlotterCounterViewSet, ReportViewSet

app_name = "reports"

router = SimpleRouter()
router.register(prefix=r"counters", viewset=BlotterCounterViewSet, basename="counter")
router.register(prefix=r"", viewset=ReportViewSet, basename="report")

urlpatterns = [
    path("", include(router.urls)),
]
