"""
Core constants — **Single Source of Truth** for project-wide magic numbers.

Any formula or business rule that references a numeric constant should
import it from here instead of hardcoding.  Values that operators may want
to tune per deployment are read from ``settings.REPORT_WORKFLOW`` through
``workflow_setting``; the constants below are the defaults.
"""

from __future__ import annotations

from typing import Any

# ── Blotter numbering ───────────────────────────────────────────────
# Format: ``YYYY-MM-NNNNNN`` (e.g. ``2025-10-000001``).
BLOTTER_NUMBER_PATTERN: str = r"^\d{4}-\d{2}-\d{6}$"
BLOTTER_SEQUENCE_DIGITS: int = 6

# Counter transaction retries (attempts, not re-tries).
COUNTER_MAX_ATTEMPTS: int = 5
COUNTER_BACKOFF_BASE_SECONDS: float = 0.05

# ── Inbox notifications ─────────────────────────────────────────────
NOTIFICATION_RETENTION_DAYS: int = 30

# ── Audit details guard rails ───────────────────────────────────────
AUDIT_DETAILS_MAX_DEPTH: int = 2
AUDIT_DETAILS_MAX_STRING: int = 200

# ── Officer metrics ─────────────────────────────────────────────────
OFFICER_METRICS_PERIOD_DAYS: int = 30
OFFICER_METRICS_CACHE_TTL_SECONDS: int = 60

_DEFAULTS: dict[str, Any] = {
    "COUNTER_MAX_ATTEMPTS": COUNTER_MAX_ATTEMPTS,
    "COUNTER_BACKOFF_BASE_SECONDS": COUNTER_BACKOFF_BASE_SECONDS,
    "NOTIFICATION_RETENTION_DAYS": NOTIFICATION_RETENTION_DAYS,
    "OFFICER_METRICS_CACHE_TTL_SECONDS": OFFICER_METRICS_CACHE_TTL_SECONDS,
}


def workflow_setting(name: str) -> Any:
    """Return ``settings.REPORT_WORKFLOW[name]``, falling back to the default."""
    from django.conf import settings

    overrides = getattr(settings, "REPORT_WORKFLOW", {}) or {}
    return overrides.get(name, _DEFAULTS[name])
