"""
core.domain.exception_handler — DRF-compatible global exception handler.

Maps domain exceptions from ``core.domain.exceptions`` to proper
DRF ``Response`` objects so that views don't need per-endpoint
try/except boilerplate.

Register in ``settings.py``::

    REST_FRAMEWORK = {
        ...
        'EXCEPTION_HANDLER': 'core.domain.exception_handler.domain_exception_handler',
    }
"""

from __future__ import annotations

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_handler

from core.domain.exceptions import (
    Conflict,
    CounterContention,
    DomainError,
    InvalidTransition,
    MissingRequiredField,
    NoEligibleOfficers,
    NotFound,
    PermissionDenied,
    Timeout,
)

logger = logging.getLogger(__name__)

# Domain exception → HTTP status code
_STATUS_MAP: dict[type, int] = {
    MissingRequiredField: 400,
    PermissionDenied:     403,
    NotFound:             404,
    InvalidTransition:    409,
    NoEligibleOfficers:   409,
    Conflict:             409,
    CounterContention:    503,
    Timeout:              504,
    DomainError:          400,  # catch-all base class last
}

# Error codes surfaced to clients so they can tell the failure kinds apart.
_CODE_MAP: dict[type, str] = {
    MissingRequiredField: "missing_required_field",
    PermissionDenied:     "permission_denied",
    NotFound:             "not_found",
    InvalidTransition:    "invalid_transition",
    NoEligibleOfficers:   "no_eligible_officers",
    Conflict:             "conflict",
    CounterContention:    "counter_contention",
    Timeout:              "timeout",
    DomainError:          "domain_error",
}


def domain_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    DRF exception handler that also handles ``core.domain.exceptions``.

    The default DRF handler is called first.  If it returns ``None``
    (meaning DRF doesn't recognise the exception), we check whether
    it's one of our domain exceptions and return an appropriate response.
    """
    response = drf_default_handler(exc, context)
    if response is not None:
        return response

    # Order matters: most specific first
    for exc_class, status_code in _STATUS_MAP.items():
        if isinstance(exc, exc_class):
            logger.warning(
                "Domain exception [%s] in %s: %s",
                type(exc).__name__,
                context.get("view", "unknown"),
                exc,
            )
            body = {"detail": str(exc), "code": _CODE_MAP[exc_class]}
            if isinstance(exc, MissingRequiredField):
                body["field"] = exc.field
            return Response(body, status=status_code)

    return None
