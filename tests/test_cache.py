"""Tests for the snapshot cache: LRU eviction, TTL expiry and key derivation."""
from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest
from hypothesis import given, settings, strategies as st

from conftest import EVALUATION_TIME, make_snapshot
from graphpulse.cache import InMemorySnapshotCache, SnapshotCache, snapshot_cache_key


@pytest.fixture
def snapshot():
    return make_snapshot([("a", "b", 1.0)])


@pytest.mark.unit
def test_store_and_get(snapshot):
    cache = InMemorySnapshotCache()
    cache.store("snapshot:one", snapshot)

    assert cache.get("snapshot:one") is snapshot
    assert cache.get("snapshot:missing") is None
    stats = cache.get_stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 50.0


@pytest.mark.unit
def test_least_recently_used_entry_is_evicted(snapshot):
    cache = InMemorySnapshotCache(max_size=2)
    cache.store("a", snapshot)
    cache.store("b", snapshot)
    cache.get("a")
    cache.store("c", snapshot)

    assert cache.get("b") is None
    assert cache.get("a") is snapshot
    assert cache.get("c") is snapshot
    assert cache.get_stats()["evictions"] == 1


@pytest.mark.unit
def test_overwriting_a_key_does_not_evict(snapshot):
    cache = InMemorySnapshotCache(max_size=2)
    cache.store("a", snapshot)
    cache.store("b", snapshot)
    cache.store("a", snapshot)

    assert len(cache) == 2
    assert cache.get_stats()["evictions"] == 0


@pytest.mark.unit
def test_entries_expire_after_ttl(snapshot):
    cache = InMemorySnapshotCache(ttl_seconds=10)
    with patch("graphpulse.cache.time.time", return_value=1000.0):
        cache.store("a", snapshot)
    with patch("graphpulse.cache.time.time", return_value=1005.0):
        assert cache.get("a") is snapshot
    with patch("graphpulse.cache.time.time", return_value=1011.0):
        assert cache.get("a") is None

    assert cache.get_stats()["expirations"] == 1
    assert len(cache) == 0


@pytest.mark.unit
def test_zero_ttl_never_expires(snapshot):
    cache = InMemorySnapshotCache(ttl_seconds=0)
    with patch("graphpulse.cache.time.time", return_value=0.0):
        cache.store("a", snapshot)
    with patch("graphpulse.cache.time.time", return_value=10 ** 9):
        assert cache.get("a") is snapshot


@pytest.mark.unit
def test_invalidate_by_prefix(snapshot):
    cache = InMemorySnapshotCache()
    cache.store("snapshot:1", snapshot)
    cache.store("snapshot:2", snapshot)
    cache.store("adhoc", snapshot)

    assert cache.invalidate("snapshot:") == 2
    assert len(cache) == 1
    assert cache.invalidate() == 1
    assert len(cache) == 0


@pytest.mark.unit
def test_satisfies_protocol():
    assert isinstance(InMemorySnapshotCache(), SnapshotCache)


@pytest.mark.unit
@pytest.mark.parametrize("kwargs", [{"max_size": 0}, {"ttl_seconds": -1}])
def test_invalid_parameters(kwargs):
    with pytest.raises(ValueError):
        InMemorySnapshotCache(**kwargs)


# ==============================================================================
# Key derivation
# ==============================================================================

@pytest.mark.unit
def test_key_is_deterministic_and_content_sensitive(snapshot):
    same = make_snapshot([("a", "b", 1.0)])
    heavier = make_snapshot([("a", "b", 2.0)])
    later = make_snapshot([("a", "b", 1.0)], generated_at=EVALUATION_TIME + timedelta(hours=1))

    key = snapshot_cache_key(snapshot)
    assert key.startswith("snapshot:")
    assert key == snapshot_cache_key(same)
    assert key != snapshot_cache_key(heavier)
    assert key != snapshot_cache_key(later)


# ==============================================================================
# Properties
# ==============================================================================

@pytest.mark.property
@given(
    max_size=st.integers(min_value=1, max_value=20),
    keys=st.lists(st.text(min_size=1, max_size=8), max_size=60),
)
@settings(max_examples=100)
def test_size_never_exceeds_max(max_size, keys):
    """Property: however many stores happen, the cache stays within bounds."""
    cache = InMemorySnapshotCache(max_size=max_size)
    snapshot = make_snapshot([])
    for key in keys:
        cache.store(key, snapshot)
        assert len(cache) <= max_size

    # PROPERTY: the most recent store is always retrievable
    if keys:
        assert cache.get(keys[-1]) is snapshot


@pytest.mark.property
@given(keys=st.lists(st.text(min_size=1, max_size=8), min_size=1, max_size=30, unique=True))
def test_hits_plus_misses_equals_lookups(keys):
    cache = InMemorySnapshotCache(max_size=len(keys))
    snapshot = make_snapshot([])
    for key in keys[::2]:
        cache.store(key, snapshot)
    for key in keys:
        cache.get(key)

    stats = cache.get_stats()
    assert stats["hits"] + stats["misses"] == len(keys)
    assert stats["hits"] == len(keys[::2])
