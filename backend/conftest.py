"""
Root conftest.py — shared fixtures for the entire test suite.

Provides:
  - ``api_client`` fixture returning a DRF ``APIClient``.
  - ``create_user`` factory fixture for creating test users.
  - ``auth_header`` fixture for authenticated requests (JWT).
  - ``rbac_roles`` fixture seeding the default roles (``setup_rbac``).
  - ``create_officer`` / ``create_report`` factories for workflow tests.
"""

from __future__ import annotations

import pytest
from rest_framework.test import APIClient


@pytest.fixture()
def api_client() -> APIClient:
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture()
def rbac_roles(db) -> dict:
    """
    Seed the default roles and return them keyed by name::

        {"System Admin": <Role>, "Supervisor": <Role>, ...}
    """
    from accounts.management.commands.setup_rbac import seed_roles
    from accounts.models import Role

    seed_roles()
    return {role.name: role for role in Role.objects.all()}


@pytest.fixture()
def create_user(db):
    """
    Factory fixture that creates a user with sensible defaults.

    Usage::

        def test_something(create_user):
            user = create_user(username="alice")
            # or with all fields:
            user = create_user(
                username="bob",
                password="Str0ng!Pass",
                email="bob@example.com",
                phone_number="09121234567",
            )
    """
    from accounts.models import User

    _counter = 0

    def _factory(
        *,
        username: str | None = None,
        password: str = "TestPass123!",
        email: str | None = None,
        phone_number: str | None = None,
        role=None,
        is_active: bool = True,
        **kwargs,
    ) -> User:
        nonlocal _counter
        _counter += 1
        if username is None:
            username = f"testuser{_counter}"
        if email is None:
            email = f"{username}@test.local"
        if phone_number is None:
            phone_number = f"0912{_counter:07d}"

        user = User.objects.create_user(
            username=username,
            password=password,
            email=email,
            phone_number=phone_number,
            is_active=is_active,
            **kwargs,
        )
        if role is not None:
            user.role = role
            user.save(update_fields=["role"])
        return user

    return _factory


@pytest.fixture()
def create_officer(create_user, rbac_roles):
    """
    Factory fixture for an ``Officer`` profile plus its user.

    ``rank="supervisor"`` also gives the user the Supervisor role;
    everyone else gets the Officer role.
    """
    from accounts.models import Officer, OfficerRank, OfficerStatus

    def _factory(
        *,
        rank: str = OfficerRank.OFFICER,
        status: str = OfficerStatus.ACTIVE,
        jurisdiction_id: str = "",
        **user_kwargs,
    ) -> Officer:
        role_name = "Supervisor" if rank == OfficerRank.SUPERVISOR else "Officer"
        user_kwargs.setdefault("role", rbac_roles[role_name])
        user = create_user(**user_kwargs)
        return Officer.objects.create(
            user=user,
            rank=rank,
            status=status,
            jurisdiction_id=jurisdiction_id,
        )

    return _factory


@pytest.fixture()
def create_report(db):
    """Factory fixture for a ``Report`` in any status (defaults to pending)."""
    from reports.models import Report

    def _factory(**fields) -> Report:
        fields.setdefault("category", "Theft")
        fields.setdefault("description", "Bicycle taken from the station rack.")
        return Report.objects.create(**fields)

    return _factory


@pytest.fixture()
def auth_header(create_user, api_client):
    """
    Returns a helper function that creates a user and returns an
    ``Authorization`` header dict with a valid JWT access token.

    Usage::

        def test_protected(auth_header, api_client):
            header = auth_header(username="alice")
            api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])
            resp = api_client.get("/api/core/dashboard/")
            assert resp.status_code != 401

    The returned dict looks like::

        {"Authorization": "Bearer eyJ..."}
    """
    from rest_framework_simplejwt.tokens import AccessToken

    def _make(
        *,
        username: str | None = None,
        role=None,
        **user_kwargs,
    ) -> dict[str, str]:
        user = create_user(username=username, role=role, **user_kwargs)
        token = AccessToken.for_user(user)
        return {"Authorization": f"Bearer {token}"}

    return _make
