"""
core.domain.cache — Injected TTL cache port.

Callers that want to memoise derived data (e.g. officer workload metrics
for the dashboard) receive a ``CachePort`` and own its lifetime.  The
assignment picker never reads through a cache: workloads are recomputed
on every pick.
"""

from __future__ import annotations

import abc
from typing import Any

from django.core.cache import caches

_MISSING = object()


class CachePort(abc.ABC):
    """Minimal key/value cache with per-entry TTL."""

    @abc.abstractmethod
    def get(self, key: str) -> tuple[Any, bool]:
        """Return ``(value, found)``."""

    @abc.abstractmethod
    def put(self, key: str, value: Any, ttl: float) -> None:
        """Store ``value`` for ``ttl`` seconds."""

    def delete(self, key: str) -> None:
        """Drop ``key`` if present."""


class DjangoCachePort(CachePort):
    """``CachePort`` backed by one of the ``settings.CACHES`` aliases."""

    def __init__(self, alias: str = "default", prefix: str = "workflow") -> None:
        self._cache = caches[alias]
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def get(self, key: str) -> tuple[Any, bool]:
        value = self._cache.get(self._key(key), _MISSING)
        if value is _MISSING:
            return None, False
        return value, True

    def put(self, key: str, value: Any, ttl: float) -> None:
        self._cache.set(self._key(key), value, timeout=ttl)

    def delete(self, key: str) -> None:
        self._cache.delete(self._key(key))
