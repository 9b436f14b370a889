"""
reports.assignment — Least-loaded officer picker.

Algorithm
---------
1. Keep officers with ``rank == officer`` and ``status == active``.
2. If the report has a jurisdiction and at least one remaining officer
   shares it, narrow to that subset; otherwise keep the whole pool.
3. Empty pool → ``NoEligibleOfficers``.
4. For each candidate compute ``open_count`` (reports assigned to them in
   an open status) and ``last_updated`` (newest ``updated_at`` among
   reports they hold or handled, epoch milliseconds, 0 when none).
5. Sort ascending by ``(open_count, last_updated)``: fewest open cases
   wins, ties go to the officer idle longest.  Officer id is the final
   key so equal workloads always rank the same way.

Workloads are recomputed from the database on every call; nothing is
cached.  A concurrent change may make a pick slightly suboptimal but the
report write itself is a single locked row update.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable

from django.db.models import Count, Max

from accounts.models import Officer, OfficerRank, OfficerStatus
from core.domain.exceptions import NoEligibleOfficers

from .models import OPEN_STATUSES, Report


@dataclass(frozen=True)
class Workload:
    officer_id: Any
    open_count: int = 0
    last_updated: int = 0


@dataclass(frozen=True)
class PickResult:
    officer_id: Any
    reason: str
    open_count: int
    last_updated: int


def is_eligible(officer: Officer | None) -> bool:
    """Active, rank-and-file officer."""
    return (
        officer is not None
        and officer.rank == OfficerRank.OFFICER
        and officer.status == OfficerStatus.ACTIVE
    )


def eligible_pool(report: Report, officers: Iterable[Officer]) -> list[Officer]:
    """Steps 1–2: eligibility filter plus soft jurisdiction narrowing."""
    pool = [officer for officer in officers if is_eligible(officer)]
    jurisdiction = getattr(report, "jurisdiction_id", "")
    if jurisdiction:
        local = [officer for officer in pool if officer.jurisdiction_id == jurisdiction]
        if local:
            return local
    return pool


def _epoch_ms(moment) -> int:
    return int(moment.timestamp() * 1000) if moment else 0


def compute_workloads(officer_ids: Iterable[Any]) -> dict[Any, Workload]:
    """Fresh workload figures for ``officer_ids`` (three grouped queries)."""
    ids = list(officer_ids)
    open_counts = dict(
        Report.objects
        .filter(assigned_officer_id__in=ids, status__in=OPEN_STATUSES)
        .values_list("assigned_officer_id")
        .annotate(n=Count("id"))
        .order_by()
    )
    latest: dict[Any, Any] = {}
    for field in ("assigned_officer_id", "handled_by_id"):
        rows = (
            Report.objects
            .filter(**{f"{field}__in": ids})
            .values_list(field)
            .annotate(latest=Max("updated_at"))
            .order_by()
        )
        for officer_id, moment in rows:
            if moment and (officer_id not in latest or moment > latest[officer_id]):
                latest[officer_id] = moment

    return {
        officer_id: Workload(
            officer_id=officer_id,
            open_count=open_counts.get(officer_id, 0),
            last_updated=_epoch_ms(latest.get(officer_id)),
        )
        for officer_id in ids
    }


def rank_workloads(workloads: Iterable[Workload]) -> list[Workload]:
    """Step 5 on its own: ascending ``(open_count, last_updated, officer_id)``."""
    return sorted(
        workloads,
        key=lambda w: (w.open_count, w.last_updated, w.officer_id),
    )


def pick_officer(
    report: Report,
    officer_pool: Iterable[Officer],
    *,
    workload_fn: Callable[[Iterable[Any]], dict[Any, Workload]] = compute_workloads,
) -> PickResult:
    """
    Choose the least-loaded eligible officer for ``report``.

    Raises
    ------
    NoEligibleOfficers
        When no active officer remains after filtering.
    """
    pool = eligible_pool(report, officer_pool)
    if not pool:
        raise NoEligibleOfficers()

    workloads = workload_fn([officer.pk for officer in pool])
    ranked = rank_workloads(
        workloads.get(officer.pk, Workload(officer.pk)) for officer in pool
    )
    winner = ranked[0]
    return PickResult(
        officer_id=winner.officer_id,
        reason=f"open={winner.open_count}, lastUpdated={winner.last_updated}",
        open_count=winner.open_count,
        last_updated=winner.last_updated,
    )
