"""
Report result cache.

A simple in-memory TTL cache for report results, keyed by
(tenant id, report spec). One instance is built per process and injected
into the ReportEngine.

Capacity is enforced by evicting the entry that was inserted first.
Reads do not promote entries, so this is insertion-order eviction rather
than LRU.

The cache is process-local (dict-based).  For multi-process deployments swap
the backend for Redis / Memcached.
"""
from __future__ import annotations

import hashlib
import json
import time
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from report_engine.core.logging import get_logger
from report_engine.reports.spec import ReportResult, ReportSpec

logger = get_logger(__name__)


# ── Configuration ───────────────────────────────────────

DEFAULT_TTL_SECONDS = 300  # 5 minutes
DEFAULT_MAX_SIZE = 100


# ── Cache entry ─────────────────────────────────────────


@dataclass
class CacheEntry:
    """A single cached result."""
    key: str
    tenant_id: str
    result: ReportResult
    inserted_at: float
    hit_count: int = 0


# ── Cache implementation ────────────────────────────────


class ReportCache:
    """Thread-safe in-memory TTL cache for report results.

    Parameters
    ----------
    ttl : float
        Time-to-live in seconds for each entry.
    max_size : int
        Maximum number of entries. The first-inserted entry is evicted
        once the cache grows past it.
    clock : callable
        Returns the current time in seconds; ``time.time`` by default.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        self._store: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._ttl = ttl
        self._max_size = max_size
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    # ── Public API ──────────────────────────────────────

    def get(self, tenant_id: str, spec: ReportSpec) -> ReportResult | None:
        """Retrieve a copy of a cached result, or ``None`` on miss / expiry."""
        key = self.make_key(tenant_id, spec)
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._is_expired(entry):
                del self._store[key]
                self._misses += 1
                return None
            entry.hit_count += 1
            self._hits += 1
            result = entry.result.model_copy(deep=True)
        logger.debug("Cache HIT tenant=%s key=%s hits=%d", tenant_id, key[:16], entry.hit_count)
        return result

    def put(self, tenant_id: str, spec: ReportSpec, result: ReportResult) -> None:
        """Store a result; re-putting a key moves it to the back of the eviction order."""
        key = self.make_key(tenant_id, spec)
        with self._lock:
            self._store.pop(key, None)
            self._store[key] = CacheEntry(
                key=key,
                tenant_id=tenant_id,
                result=result.model_copy(deep=True),
                inserted_at=self._clock(),
            )
            while len(self._store) > self._max_size:
                self._evict_first()
            size = len(self._store)
        logger.debug("Cache PUT tenant=%s key=%s size=%d", tenant_id, key[:16], size)

    def invalidate(self, tenant_id: str | None = None) -> int:
        """Remove one tenant's entries, or flush all. Returns number of entries removed."""
        with self._lock:
            if tenant_id is None:
                count = len(self._store)
                self._store.clear()
                return count
            doomed = [k for k, v in self._store.items() if v.tenant_id == tenant_id]
            for k in doomed:
                del self._store[k]
            return len(doomed)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._store),
                "max_size": self._max_size,
                "ttl_seconds": self._ttl,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": round(self._hits / total, 3) if total else 0.0,
            }

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count removed."""
        with self._lock:
            expired = [k for k, v in self._store.items() if self._is_expired(v)]
            for k in expired:
                del self._store[k]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    # ── Internals ───────────────────────────────────────

    @staticmethod
    def make_key(tenant_id: str, spec: ReportSpec) -> str:
        """Deterministic cache key from tenant + spec serialization."""
        payload = json.dumps(
            spec.model_dump(mode="json", by_alias=True),
            separators=(",", ":"),
            default=str,
        )
        raw = f"{tenant_id}|{payload}"
        return hashlib.sha256(raw.encode()).hexdigest()

    def _is_expired(self, entry: CacheEntry) -> bool:
        return (self._clock() - entry.inserted_at) >= self._ttl

    def _evict_first(self) -> None:
        """Remove the entry inserted first (dicts keep insertion order)."""
        if not self._store:
            return
        first_key = next(iter(self._store))
        del self._store[first_key]
        self._evictions += 1
        logger.debug("Cache EVICT key=%s", first_key[:16])
