"""
Resolution Cache - time-bounded memoization in front of the Permission Store.

Provides:
  - get_or_load(key, loader) cache-aside with a fixed freshness window (5 min)
  - invalidate_all() hook for role/permission mutations
  - hit / miss counters for the health endpoint

One instance is owned by each Flask app (``app.extensions["permission_cache"]``)
and shared by every request in that process. Tests construct their own with a
fake clock.

Staleness contract:
    A role/permission change made without calling ``invalidate_all()`` stays
    invisible to authorization checks for up to ``ttl`` seconds. This bound is
    accepted. Every write path in ``permission_service.RoleAdminService``
    invalidates, so staleness only comes from writes made outside that service
    (manual SQL, another process).
"""

import logging
import threading
import time
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL = 300  # 5 minutes


# ── Key builders ─────────────────────────────────────────────────────────

ALL_ROLES_KEY = "all-roles"
ALL_PERMISSIONS_KEY = "all-permissions"


def role_key(role_id):
    return f"role-{role_id}"


def role_name_key(name):
    return f"role-name-{name}"


# ── Cache ────────────────────────────────────────────────────────────────


class ResolutionCache:
    """Thread-safe TTL cache keyed by lookup name."""

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, object]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._generation = 0

    def _get_fresh(self, key: str):
        """Return (True, value) for a fresh entry, (False, None) otherwise. Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        cached_at, value = entry
        if self._clock() - cached_at >= self.ttl:
            del self._entries[key]
            return False, None
        return True, value

    def get_or_load(self, key: str, loader: Callable[[], T]) -> T:
        with self._lock:
            found, value = self._get_fresh(key)
            if found:
                self._hits += 1
                return value
            self._misses += 1
            generation = self._generation

        # Loader runs unlocked; a raise leaves the entry map untouched.
        value = loader()

        with self._lock:
            # An invalidate_all() during the load means the value may predate the write.
            if generation == self._generation:
                self._entries[key] = (self._clock(), value)
        logger.debug("Permission cache filled key=%s", key)
        return value

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_all(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._generation += 1
        logger.info("Permission cache invalidated (%d entries dropped)", count)

    def stats(self) -> dict:
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "ttl_seconds": self.ttl,
            }
