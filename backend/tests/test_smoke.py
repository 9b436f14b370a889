"""
Smoke tests — verify that Django boots, URL routing resolves, and
the core domain modules are importable.

These tests require a DB (they use ``@pytest.mark.django_db`` where
needed) but do NOT require real data — they just prove the plumbing
works.
"""

from __future__ import annotations

import pytest
from django.urls import resolve, reverse


# ════════════════════════════════════════════════════════════════════
#  URL Routing Smoke Tests
# ════════════════════════════════════════════════════════════════════

class TestURLRouting:
    """Ensure all top-level app URL namespaces resolve without 404."""

    EXPECTED_URLS = [
        # (url_name, expected_path)
        ("accounts:login",          "/api/accounts/auth/login/"),
        ("accounts:me",             "/api/accounts/me/"),
        ("accounts:officer-list",   "/api/accounts/officers/"),
        ("reports:report-list",     "/api/reports/"),
        ("core:dashboard-stats",    "/api/core/dashboard/"),
        ("core:system-constants",   "/api/core/constants/"),
        ("core:notification-list",  "/api/core/notifications/"),
        ("core:audit-log-list",     "/api/core/audit-logs/"),
    ]

    @pytest.mark.parametrize("url_name,expected_path", EXPECTED_URLS)
    def test_url_reverses(self, url_name: str, expected_path: str):
        """Named URL reverses to the expected path."""
        url = reverse(url_name)
        assert url == expected_path, f"{url_name} resolved to {url}, expected {expected_path}"

    @pytest.mark.parametrize("url_name,expected_path", EXPECTED_URLS)
    def test_url_resolve_matches_view(self, url_name: str, expected_path: str):
        """Path resolves to a view function (not a 404)."""
        match = resolve(expected_path)
        assert match.func is not None

    @pytest.mark.parametrize(
        "url_name,kwargs,expected_path",
        [
            ("reports:report-transition", {"pk": 7}, "/api/reports/7/transition/"),
            ("reports:report-approve-closure", {"pk": 7}, "/api/reports/7/approve-closure/"),
            ("reports:report-notify-officer", {"pk": 7}, "/api/reports/7/notify-officer/"),
            ("reports:counter-detail", {"pk": "2025-10"}, "/api/reports/counters/2025-10/"),
            ("accounts:officer-set-status", {"pk": 3}, "/api/accounts/officers/3/status/"),
            ("core:notification-seen", {"pk": 5}, "/api/core/notifications/5/seen/"),
        ],
    )
    def test_detail_routes(self, url_name: str, kwargs: dict, expected_path: str):
        assert reverse(url_name, kwargs=kwargs) == expected_path


@pytest.mark.django_db
def test_openapi_schema_renders(api_client):
    response = api_client.get(reverse("schema"))
    assert response.status_code == 200


@pytest.mark.django_db
def test_jwt_header_authenticates(api_client, auth_header, rbac_roles):
    url = reverse("core:notification-list")
    assert api_client.get(url).status_code == 401

    header = auth_header(role=rbac_roles["Citizen"])
    api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])
    response = api_client.get(url)
    assert response.status_code == 200
    assert response.data == []


# ════════════════════════════════════════════════════════════════════
#  Core Domain Module Import Tests
# ════════════════════════════════════════════════════════════════════

class TestCoreDomainImports:
    """Verify that shared domain utility modules are importable."""

    def test_import_exceptions(self):
        from core.domain.exceptions import (
            Conflict,
            DomainError,
            InvalidTransition,
            NotFound,
            PermissionDenied,
        )
        # Ensure they form an inheritance chain
        assert issubclass(InvalidTransition, Conflict)
        assert issubclass(Conflict, DomainError)
        assert issubclass(PermissionDenied, DomainError)
        assert issubclass(NotFound, DomainError)

    def test_import_notifications(self):
        from core.domain.notifications import NotificationDispatcher
        assert hasattr(NotificationDispatcher, "send_batch")

    def test_import_transactions(self):
        from core.domain.transactions import lock_for_update, run_in_atomic
        assert callable(run_in_atomic)
        assert callable(lock_for_update)

    def test_import_workflow(self):
        from reports import assignment, numbering, state_machine
        assert callable(state_machine.transition)
        assert callable(assignment.pick_officer)
        assert callable(numbering.next_number)


# ════════════════════════════════════════════════════════════════════
#  Exception Behaviour Tests
# ════════════════════════════════════════════════════════════════════

class TestDomainExceptions:
    """Unit tests for domain exception classes."""

    def test_domain_error_message(self):
        from core.domain.exceptions import DomainError
        err = DomainError("test message")
        assert str(err) == "test message"

    def test_invalid_transition_structured(self):
        from core.domain.exceptions import InvalidTransition
        err = InvalidTransition(
            current="pending",
            target="resolved",
            reason="Report must be assigned first.",
        )
        assert "pending" in str(err)
        assert "resolved" in str(err)
        assert "Report must be assigned first." in str(err)
        assert err.current == "pending"
        assert err.target == "resolved"

    def test_invalid_transition_plain_message(self):
        from core.domain.exceptions import InvalidTransition
        err = InvalidTransition("Closure already reviewed.")
        assert str(err) == "Closure already reviewed."
