"""
core.domain.feed — In-process change feed.

``subscribe(entity_type, entity_id)`` returns a ``Subscription`` that
collects update dicts published for that entity (``entity_id=None``
follows every entity of the type).  Workflow services publish through
``publish_on_commit`` so subscribers only ever observe committed state.

The feed is request/response friendly: iterating a subscription drains
the updates received so far and stops; it never blocks.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from typing import Any

from django.db import transaction

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_subscribers: dict[tuple[str, Any], list["Subscription"]] = defaultdict(list)


class Subscription:
    """A stream of updates for one entity (or one entity type)."""

    def __init__(self, entity_type: str, entity_id: Any = None) -> None:
        self.entity_type = entity_type
        self.entity_id = None if entity_id is None else str(entity_id)
        self._pending: deque[dict] = deque()
        self.closed = False

    def _push(self, update: dict) -> None:
        self._pending.append(update)

    def __iter__(self):
        while self._pending:
            yield self._pending.popleft()

    def drain(self) -> list[dict]:
        return list(self)

    def close(self) -> None:
        with _lock:
            bucket = _subscribers.get((self.entity_type, self.entity_id), [])
            if self in bucket:
                bucket.remove(self)
        self.closed = True

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def subscribe(entity_type: str, entity_id: Any = None) -> Subscription:
    subscription = Subscription(entity_type, entity_id)
    with _lock:
        _subscribers[(subscription.entity_type, subscription.entity_id)].append(subscription)
    return subscription


def publish(entity_type: str, entity_id: Any, update: dict) -> int:
    """Deliver ``update`` to matching subscribers; return how many received it."""
    key = str(entity_id)
    with _lock:
        targets = list(_subscribers.get((entity_type, key), []))
        targets += _subscribers.get((entity_type, None), [])
    for subscription in targets:
        subscription._push(dict(update, entity_type=entity_type, entity_id=key))
    logger.debug("Published %s:%s to %d subscriber(s)", entity_type, key, len(targets))
    return len(targets)


def publish_on_commit(entity_type: str, entity_id: Any, update: dict) -> None:
    """Schedule ``publish`` for after the current transaction commits."""
    transaction.on_commit(lambda: publish(entity_type, entity_id, update))
