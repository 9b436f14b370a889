"""
Accounts app URL configuration.

Included in the project-level ``urls.py`` as::

    path('api/accounts/', include('accounts.urls')),

Endpoint Map
------------
Authentication
    POST   /auth/login/                   → LoginView
    POST   /auth/logout/                  → LogoutView
    POST   /auth/token/refresh/           → TokenRefreshView (SimpleJWT)

Current User
    GET    /me/                           → MeView

User Management
    PATCH  /users/{id}/assign-role/       → UserViewSet.assign_role

Officers
    GET    /officers/                     → OfficerViewSet.list
    GET    /officers/{uid}/               → OfficerViewSet.retrieve
    PATCH  /officers/{uid}/status/        → OfficerViewSet.set_status
    PUT    /officers/{uid}/push-token/    → OfficerViewSet.push_token
    GET    /officers/{uid}/metrics/       → OfficerViewSet.metrics
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView

from .views import LoginView, LogoutView, MeView, OfficerViewSet, UserViewSet

app_name = "accounts"

router = DefaultRouter()
router.register(r"users", UserViewSet, basename="user")
router.register(r"officers", OfficerViewSet, basename="officer")

urlpatterns = [
    # ── Authentication ───────────────────────────────────────────────
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path(
        "auth/token/refresh/",
        TokenRefreshView.as_view(),
        name="token-refresh",
    ),

    # ── Current User (Me) ───────────────────────────────────────────
    path("me/", MeView.as_view(), name="me"),

    # ── Router-registered viewsets (users/, officers/) ───────────────
    path("", include(router.urls)),
]
