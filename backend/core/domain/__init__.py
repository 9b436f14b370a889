"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain exception taxonomy that maps cleanly to HTTP responses.
exception_handler  DRF global handler for the taxonomy.
transactions       Helpers for ``transaction.atomic`` + ``select_for_update``.
deadlines          Caller-supplied time budgets (``Timeout``).
effects            Audit / notify effect descriptors and ``EffectOutcome``.
audit              Append-only audit trail writer with typed details.
notifications      Inbox notification dispatcher and message templates.
cache              Injected TTL cache port.
feed               In-process change feed (subscribe / publish on commit).
access             Permission checks and permission-scoped querysets.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidTransition
    from core.domain.audit import AuditService
    from core.domain.notifications import NotificationDispatcher
    from core.domain.transactions import lock_for_update
"""
