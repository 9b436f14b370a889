"""
reports.numbering — Sequential blotter numbers.

Numbers look like ``2025-10-000001``: the period (``YYYY-MM``) followed by
a six-digit sequence that restarts at 1 every month.  Issuance is a
read-modify-write on the period's ``BlotterCounter`` row under
``select_for_update`` inside a savepoint; when the enclosing transaction
rolls back (e.g. the validation that asked for the number fails), the
increment rolls back with it, so numbers have no gaps.

Write conflicts (``IntegrityError`` when two callers create the same
period row, ``OperationalError`` for lock timeouts / serialization
failures) are retried with jittered exponential backoff up to
``REPORT_WORKFLOW["COUNTER_MAX_ATTEMPTS"]`` attempts, then
``CounterContention`` is raised.
"""

from __future__ import annotations

import logging
import random
import re
import time
from dataclasses import dataclass
from datetime import datetime

from django.db import IntegrityError, OperationalError, transaction
from django.utils import timezone

from core.constants import BLOTTER_NUMBER_PATTERN, BLOTTER_SEQUENCE_DIGITS, workflow_setting
from core.domain.deadlines import Deadline, check_deadline
from core.domain.exceptions import CounterContention, DomainError

from .models import BlotterCounter

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(BLOTTER_NUMBER_PATTERN, re.ASCII)
_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$", re.ASCII)


@dataclass(frozen=True)
class ParsedBlotterNumber:
    year: int
    month: int
    number: int

    @property
    def period_key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def period_key_for(moment: datetime | None = None) -> str:
    """``YYYY-MM`` of ``moment`` (default: now) in the project time zone."""
    moment = timezone.localtime(moment) if moment is not None else timezone.localtime()
    return f"{moment.year:04d}-{moment.month:02d}"


def split_period_key(period_key: str) -> tuple[int, int]:
    match = _PERIOD_RE.fullmatch(period_key or "")
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise DomainError(f"Invalid period key '{period_key}'; expected YYYY-MM.")
    return int(match.group(1)), int(match.group(2))


def format_number(year: int, month: int, number: int) -> str:
    return f"{year:04d}-{month:02d}-{number:0{BLOTTER_SEQUENCE_DIGITS}d}"


def is_well_formed(value) -> bool:
    """True iff ``value`` has the exact ``YYYY-MM-NNNNNN`` shape."""
    return isinstance(value, str) and _NUMBER_RE.fullmatch(value) is not None


def parse(value) -> ParsedBlotterNumber | None:
    """Split a blotter number into its parts; ``None`` if malformed."""
    if not is_well_formed(value):
        return None
    year, month, number = value.split("-")
    return ParsedBlotterNumber(int(year), int(month), int(number))


def _issue_once(period_key: str, year: int, month: int) -> int:
    with transaction.atomic():
        counter = (
            BlotterCounter.objects
            .select_for_update()
            .filter(pk=period_key)
            .first()
        )
        if counter is None:
            BlotterCounter.objects.create(
                period_key=period_key, year=year, month=month, last_number=1,
            )
            return 1

        if counter.year != year or counter.month != month:
            # Stale record from another period: restart the sequence.
            counter.year, counter.month, counter.last_number = year, month, 0
        counter.last_number += 1
        counter.save(update_fields=["year", "month", "last_number", "updated_at"])
        return counter.last_number


def next_number(
    period_key: str | None = None,
    *,
    now: datetime | None = None,
    deadline: Deadline | None = None,
    max_attempts: int | None = None,
    sleep=time.sleep,
) -> str:
    """
    Issue the next blotter number for ``period_key`` (default: current month).

    Raises
    ------
    CounterContention
        When every attempt conflicted.
    Timeout
        When ``deadline`` expires between attempts.
    """
    key = period_key or period_key_for(now)
    year, month = split_period_key(key)
    attempts = max_attempts or workflow_setting("COUNTER_MAX_ATTEMPTS")
    backoff = workflow_setting("COUNTER_BACKOFF_BASE_SECONDS")

    for attempt in range(1, attempts + 1):
        check_deadline(deadline, "blotter number issuance")
        try:
            sequence = _issue_once(key, year, month)
        except (IntegrityError, OperationalError) as exc:
            logger.warning(
                "Blotter counter conflict for %s (attempt %d/%d): %s",
                key, attempt, attempts, exc,
            )
            if attempt == attempts:
                break
            delay = backoff * (2 ** (attempt - 1)) * random.uniform(0.5, 1.5)
            if deadline is not None:
                delay = min(delay, deadline.remaining())
            sleep(delay)
            continue

        number = format_number(year, month, sequence)
        logger.info("Issued blotter number %s", number)
        return number

    raise CounterContention(key, attempts)


def current_counter(period_key: str) -> dict:
    """Read-only view of a period's counter for administrators."""
    year, month = split_period_key(period_key)
    counter = BlotterCounter.objects.filter(pk=period_key).first()
    last = counter.last_number if counter and (counter.year, counter.month) == (year, month) else 0
    return {
        "period_key": period_key,
        "year": year,
        "month": month,
        "last_number": last,
        "last_issued": format_number(year, month, last) if last else None,
        "updated_at": counter.updated_at if counter else None,
    }
