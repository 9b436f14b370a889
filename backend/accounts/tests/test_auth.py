"""
Integration tests — login, logout, token refresh and the "me" endpoint.

Engineering constraints:
  - django.test.TestCase + rest_framework.test.APIClient.
  - Real endpoint calls through APIClient.
  - Authentication via the real login endpoint, Bearer JWT headers.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from accounts.management.commands.setup_rbac import seed_roles
from accounts.models import Officer, OfficerRank, Role
from core.models import AuditAction, AuditLog, AuditTargetType

User = get_user_model()


class TestAuthEndpoints(TestCase):
    @classmethod
    def setUpTestData(cls):
        seed_roles()
        cls.password = "Auth!Pass1234"
        cls.admin = User.objects.create_user(
            username="auth_admin",
            password=cls.password,
            email="auth_admin@blotter.test",
            phone_number="09120000001",
            role=Role.objects.get(name="System Admin"),
        )
        cls.desk = User.objects.create_user(
            username="auth_desk",
            password=cls.password,
            email="auth_desk@blotter.test",
            phone_number="09120000002",
            first_name="Dana",
            last_name="Desk",
            role=Role.objects.get(name="Desk Officer"),
        )
        cls.supervisor = User.objects.create_user(
            username="auth_supervisor",
            password=cls.password,
            email="auth_supervisor@blotter.test",
            role=Role.objects.get(name="Supervisor"),
        )
        Officer.objects.create(
            user=cls.supervisor, rank=OfficerRank.SUPERVISOR, badge_number="S-17", jurisdiction_id="north",
        )
        cls.disabled = User.objects.create_user(
            username="auth_disabled",
            password=cls.password,
            email="auth_disabled@blotter.test",
            is_active=False,
        )

    def setUp(self):
        self.client = APIClient()
        self.login_url = reverse("accounts:login")

    def _login(self, identifier: str, password: str | None = None):
        return self.client.post(
            self.login_url,
            {"identifier": identifier, "password": password or self.password},
            format="json",
        )

    # ── Login ───────────────────────────────────────────────────────

    def test_login_with_each_identifier(self):
        for identifier in ("auth_desk", "auth_desk@blotter.test", "AUTH_DESK@blotter.test", "09120000002"):
            with self.subTest(identifier=identifier):
                response = self._login(identifier)
                self.assertEqual(response.status_code, status.HTTP_200_OK, msg=response.data)
                self.assertIn("access", response.data)
                self.assertIn("refresh", response.data)
                self.assertEqual(response.data["user"]["username"], "auth_desk")

    def test_login_response_carries_role_and_permissions(self):
        response = self._login("auth_desk")
        user = response.data["user"]
        self.assertEqual(user["role_detail"]["name"], "Desk Officer")
        self.assertIn("reports.can_validate_report", user["permissions"])
        self.assertIsNone(user["officer"])

    def test_bad_credentials(self):
        response = self._login("auth_desk", "wrong-password")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertNotIn("access", response.data)

        response = self._login("nobody")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_disabled_user_cannot_log_in(self):
        response = self._login("auth_disabled")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_missing_fields(self):
        response = self.client.post(self.login_url, {"identifier": "auth_desk"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("password", response.data)

    # ── Session audit ───────────────────────────────────────────────

    def test_admin_login_and_logout_are_audited(self):
        response = self._login("auth_admin")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        entry = AuditLog.objects.get(action=AuditAction.ADMIN_LOGIN)
        self.assertEqual(entry.actor, self.admin)
        self.assertEqual(entry.target_type, AuditTargetType.SYSTEM)
        self.assertEqual(entry.details["username"], "auth_admin")

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        response = self.client.post(
            reverse("accounts:logout"), {"refresh": response.data["refresh"]}, format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(AuditLog.objects.filter(action=AuditAction.ADMIN_LOGOUT, actor=self.admin).exists())

    def test_regular_sessions_are_not_audited(self):
        response = self._login("auth_desk")
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        self.client.post(reverse("accounts:logout"), {}, format="json")
        self.assertFalse(AuditLog.objects.exists())

    def test_logout_requires_authentication(self):
        response = self.client.post(reverse("accounts:logout"), {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    # ── Tokens ──────────────────────────────────────────────────────

    def test_refresh_returns_new_access_token(self):
        refresh = self._login("auth_desk").data["refresh"]
        response = self.client.post(reverse("accounts:token-refresh"), {"refresh": refresh}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)

    # ── Me ──────────────────────────────────────────────────────────

    def test_me_includes_officer_profile(self):
        access = self._login("auth_supervisor").data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")

        response = self.client.get(reverse("accounts:me"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["id"], self.supervisor.pk)
        self.assertEqual(response.data["officer"]["uid"], self.supervisor.pk)
        self.assertEqual(response.data["officer"]["rank"], OfficerRank.SUPERVISOR)
        self.assertEqual(response.data["officer"]["badge_number"], "S-17")
        self.assertIn("reports.can_supervise_reports", response.data["permissions"])

    def test_me_requires_authentication(self):
        response = self.client.get(reverse("accounts:me"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
