"""Snapshot persistence hook plus an in-memory LRU/TTL implementation.

The clustering service only needs ``store(key, snapshot)``; anything that
provides it (Redis, a database table, a file drop) can stand in for the
in-memory store used in tests and single-process deployments.
"""
from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from graphpulse.graph.models import GraphSnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_KEY_PREFIX = "snapshot"


@runtime_checkable
class SnapshotCache(Protocol):
    def store(self, key: str, snapshot: GraphSnapshot) -> None:
        ...


def snapshot_cache_key(snapshot: GraphSnapshot, prefix: str = SNAPSHOT_KEY_PREFIX) -> str:
    """Deterministic key derived from the snapshot contents.

    Two snapshots with the same nodes, edges and generation time hash to the
    same key regardless of when they were built.
    """
    canonical = json.dumps(snapshot.to_dict(), sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode()).hexdigest()[:16]
    return f"{prefix}:{digest}"


@dataclass
class CacheEntry:
    """Single cache entry with metadata."""
    key: str
    value: GraphSnapshot
    created_at: float
    access_count: int = 0
    last_accessed: float = 0.0

    def __post_init__(self):
        if self.last_accessed == 0.0:
            self.last_accessed = self.created_at


class InMemorySnapshotCache:
    """LRU cache with TTL and size limits for graph snapshots."""

    def __init__(self, max_size: int = 32, ttl_seconds: int = 3600):
        """
        Args:
            max_size: Maximum number of entries (LRU eviction)
            ttl_seconds: Time-to-live for entries (0 = no expiry)
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be non-negative")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "evictions": 0, "expirations": 0, "stores": 0}

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def store(self, key: str, snapshot: GraphSnapshot) -> None:
        with self._lock:
            if key in self._cache:
                del self._cache[key]
            elif len(self._cache) >= self.max_size:
                evicted_key, evicted = self._cache.popitem(last=False)
                self._stats["evictions"] += 1
                logger.debug(
                    "Cache EVICT: %s (accessed=%dx, age=%.1fs)",
                    evicted_key, evicted.access_count, time.time() - evicted.created_at,
                )

            self._cache[key] = CacheEntry(key=key, value=snapshot, created_at=time.time())
            self._stats["stores"] += 1
            logger.debug(
                "Cache SET: %s (size=%d/%d, nodes=%d, edges=%d)",
                key, len(self._cache), self.max_size, len(snapshot.nodes), len(snapshot.edges),
            )

    def get(self, key: str) -> Optional[GraphSnapshot]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._stats["misses"] += 1
                logger.debug("Cache MISS: %s", key)
                return None

            now = time.time()
            if self.ttl_seconds > 0 and now - entry.created_at > self.ttl_seconds:
                del self._cache[key]
                self._stats["expirations"] += 1
                self._stats["misses"] += 1
                logger.debug("Cache EXPIRED: %s (age=%.1fs)", key, now - entry.created_at)
                return None

            entry.access_count += 1
            entry.last_accessed = now
            self._cache.move_to_end(key)
            self._stats["hits"] += 1
            return entry.value

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """Drop entries whose key starts with ``prefix`` (all when None)."""
        with self._lock:
            if prefix is None:
                count = len(self._cache)
                self._cache.clear()
                logger.info("Cache CLEAR: invalidated all %d snapshots", count)
                return count

            doomed = [key for key in self._cache if key.startswith(prefix)]
            for key in doomed:
                del self._cache[key]
            logger.info("Cache INVALIDATE: removed %d snapshots with prefix '%s'", len(doomed), prefix)
            return len(doomed)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            total_requests = self._stats["hits"] + self._stats["misses"]
            hit_rate = (self._stats["hits"] / total_requests * 100) if total_requests > 0 else 0.0
            return {
                "size": len(self._cache),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
                "hit_rate": round(hit_rate, 2),
                "total_requests": total_requests,
                **self._stats,
            }
