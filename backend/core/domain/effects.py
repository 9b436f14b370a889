"""
core.domain.effects — Side-effect descriptors and their outcomes.

Pure workflow code (``reports.state_machine``) never writes audit rows or
notifications itself.  It returns ``AuditEffect`` / ``NotifyEffect``
descriptors; ``reports.services.CaseWorkflowService`` executes them after
the core mutation commits and reports an ``EffectOutcome`` per effect.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from core.domain.exceptions import EffectFailure

AUDIT = "audit"
NOTIFY = "notify"


@dataclass(frozen=True)
class AuditEffect:
    """An audit entry to record against ``target_type``/``target_id``."""

    action: str
    target_type: str
    target_id: str
    details: Any = None

    kind = AUDIT


@dataclass(frozen=True)
class NotifyEffect:
    """An inbox message to queue for each recipient user id."""

    recipient_ids: tuple
    title: str
    body: str
    data: dict = field(default_factory=dict)
    audience: str = ""

    kind = NOTIFY


@dataclass
class EffectOutcome:
    """Result of executing one effect after commit."""

    effect: str
    ok: bool
    error: str | None = None
    info: dict = field(default_factory=dict)

    def failure(self) -> EffectFailure | None:
        """The failure behind an ``ok=False`` outcome, or ``None``."""
        if self.ok:
            return None
        return EffectFailure(self.effect, self.error or "unknown error")

    def as_dict(self) -> dict:
        payload: dict[str, Any] = {"effect": self.effect, "ok": self.ok}
        if self.error:
            payload["error"] = self.error
        if self.info:
            payload.update(self.info)
        return payload
