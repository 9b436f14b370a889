"""
core.domain.transactions — Helpers for safe state transitions.

Provides utilities that wrap ``transaction.atomic`` and
``select_for_update`` into reusable patterns so that every app's
service layer follows the same concurrency-safe approach.

Usage::

    from core.domain.transactions import lock_for_update, run_in_atomic

    with transaction.atomic():
        report = lock_for_update(Report, report_id)
        ...

    # Side effects run in their own savepoint so a failure cannot
    # poison an outer transaction:
    run_in_atomic(AuditLog.objects.create, **fields)
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from django.db import models, transaction

from core.domain.exceptions import NotFound

T = TypeVar("T")
M = TypeVar("M", bound=models.Model)


def run_in_atomic(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Execute ``fn(*args, **kwargs)`` inside ``transaction.atomic()``.

    Called inside an enclosing transaction this opens a savepoint, so an
    exception rolls back only ``fn``'s writes.

    Args:
        fn:      Callable to run.
        *args:   Positional arguments forwarded to ``fn``.
        **kwargs: Keyword arguments forwarded to ``fn``.

    Returns:
        Whatever ``fn`` returns.

    Raises:
        Any exception raised by ``fn``; its writes are rolled back.
    """
    with transaction.atomic():
        return fn(*args, **kwargs)


def lock_for_update(model_class: type[M], pk: Any, label: str | None = None) -> M:
    """
    Acquire a row-level lock on the given model instance.

    Convenience wrapper around ``select_for_update().get(pk=pk)``
    that must be called inside an ``atomic()`` block.

    Args:
        model_class: The Django model class.
        pk:          Primary key value.
        label:       Name used in the ``NotFound`` message.

    Returns:
        The locked model instance.

    Raises:
        NotFound: If no row with that PK exists.
    """
    try:
        return model_class.objects.select_for_update().get(pk=pk)
    except (model_class.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"{label or model_class.__name__} with pk={pk} does not exist.")
