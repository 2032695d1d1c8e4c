"""Tests for the permission-aware cache."""
from __future__ import annotations

import threading
import time
from unittest.mock import patch

import pytest

from gql_cache.domain.entities import CacheKeyDescriptor, InvalidationPattern
from gql_cache.domain.exceptions import InvalidConfigurationError
from gql_cache.infrastructure.cache import PermissionAwareCache


def d(
    query: str = "GetFeed",
    user_id: str | None = "u1",
    role: str | None = "user",
    **variables: object,
) -> CacheKeyDescriptor:
    return CacheKeyDescriptor(query=query, variables=variables, user_id=user_id, role=role)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

def test_defaults() -> None:
    cache = PermissionAwareCache()
    assert cache.max_size == 1000
    assert cache.default_ttl_ms == 60_000


@pytest.mark.parametrize("max_size", [0, -1, 1.5, True, "10"])
def test_invalid_max_size_raises(max_size: object) -> None:
    with pytest.raises(InvalidConfigurationError):
        PermissionAwareCache(max_size=max_size)  # type: ignore[arg-type]


@pytest.mark.parametrize("ttl", [0, -100])
def test_invalid_default_ttl_raises(ttl: int) -> None:
    with pytest.raises(InvalidConfigurationError):
        PermissionAwareCache(default_ttl_ms=ttl)


def test_invalid_configuration_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        PermissionAwareCache(max_size=0)


# ---------------------------------------------------------------------------
# get / set
# ---------------------------------------------------------------------------

def test_miss_before_set(cache: PermissionAwareCache) -> None:
    assert cache.get(d()) is None


def test_hit_after_set_returns_same_object(cache: PermissionAwareCache) -> None:
    payload = {"feed": {"totalCount": 3}}
    cache.set(d(), payload)
    assert cache.get(d()) is payload


def test_hit_with_reordered_variables(cache: PermissionAwareCache) -> None:
    cache.set(CacheKeyDescriptor(query="Q", variables={"a": 1, "b": 2}), "v")
    assert cache.get(CacheKeyDescriptor(query="Q", variables={"b": 2, "a": 1})) == "v"


def test_cross_role_isolation(cache: PermissionAwareCache) -> None:
    cache.set(CacheKeyDescriptor(query="Q", variables={}, user_id="u1", role="admin"), "secret")
    assert cache.get(CacheKeyDescriptor(query="Q", variables={}, user_id="u2", role="user")) is None


def test_same_user_different_permissions_isolated(cache: PermissionAwareCache) -> None:
    cache.set(CacheKeyDescriptor(query="Q", user_id="u1", permissions=["read:analytics"]), "full")
    assert cache.get(CacheKeyDescriptor(query="Q", user_id="u1", permissions=[])) is None


def test_anonymous_does_not_see_authenticated_entry(cache: PermissionAwareCache) -> None:
    cache.set(d(user_id="u1", role="user"), "private")
    assert cache.get(d(user_id=None, role=None)) is None


def test_falsy_payload_is_returned(cache: PermissionAwareCache) -> None:
    cache.set(d(), {})
    assert cache.get(d()) == {}


def test_overwrite_keeps_single_entry(cache: PermissionAwareCache) -> None:
    cache.set(d(), "original")
    cache.set(d(), "updated")
    assert cache.get(d()) == "updated"
    assert cache.stats().size == 1


# ---------------------------------------------------------------------------
# TTL
# ---------------------------------------------------------------------------

def test_ttl_expiry(cache: PermissionAwareCache, clock) -> None:  # type: ignore[no-untyped-def]
    cache.set(d(), "v", ttl_ms=10)
    clock.advance(20)
    assert cache.get(d()) is None


def test_entry_live_at_exact_ttl(cache: PermissionAwareCache, clock) -> None:  # type: ignore[no-untyped-def]
    cache.set(d(), "v", ttl_ms=10)
    clock.advance(10)
    assert cache.get(d()) == "v"


def test_default_ttl_applies(cache: PermissionAwareCache, clock) -> None:  # type: ignore[no-untyped-def]
    cache.set(d(), "v")
    clock.advance(60_001)
    assert cache.get(d()) is None


def test_custom_ttl_outlives_default(cache: PermissionAwareCache, clock) -> None:  # type: ignore[no-untyped-def]
    cache.set(d(), "v", ttl_ms=300_000)
    clock.advance(61_000)
    assert cache.get(d()) == "v"


def test_expired_entry_is_removed_on_get(cache: PermissionAwareCache, clock) -> None:  # type: ignore[no-untyped-def]
    cache.set(d(), "v", ttl_ms=10)
    clock.advance(11)
    assert cache.stats().size == 1
    cache.get(d())
    assert cache.stats().size == 0


def test_non_positive_ttl_falls_back_to_default(cache: PermissionAwareCache, clock) -> None:  # type: ignore[no-untyped-def]
    cache.set(d(), "v", ttl_ms=0)
    clock.advance(30_000)
    assert cache.get(d()) == "v"


def test_default_clock_is_monotonic() -> None:
    """Without an injected clock the cache reads time.monotonic()."""
    cache = PermissionAwareCache(default_ttl_ms=90_000)
    base_time = 1000.0
    with patch("gql_cache.infrastructure.cache.time") as mock_time:
        mock_time.monotonic.return_value = base_time
        cache.set(d(), "v")
        mock_time.monotonic.return_value = base_time + 89.0
        assert cache.get(d()) == "v"
        mock_time.monotonic.return_value = base_time + 91.0
        assert cache.get(d()) is None


def test_real_clock_expiry() -> None:
    cache = PermissionAwareCache(default_ttl_ms=10)
    cache.set(d(), "v")
    time.sleep(0.02)
    assert cache.get(d()) is None


# ---------------------------------------------------------------------------
# Bounded size
# ---------------------------------------------------------------------------

def test_fifo_eviction(clock) -> None:  # type: ignore[no-untyped-def]
    cache = PermissionAwareCache(max_size=2, clock=clock)
    cache.set(d("A"), "a")
    cache.set(d("B"), "b")
    cache.set(d("C"), "c")
    assert cache.stats().size <= 2
    assert cache.get(d("A")) is None
    assert cache.get(d("B")) == "b"
    assert cache.get(d("C")) == "c"
    assert cache.stats().evictions == 1


def test_get_does_not_refresh_eviction_order(clock) -> None:  # type: ignore[no-untyped-def]
    cache = PermissionAwareCache(max_size=2, clock=clock)
    cache.set(d("A"), "a")
    cache.set(d("B"), "b")
    cache.get(d("A"))
    cache.set(d("C"), "c")
    assert cache.get(d("A")) is None
    assert cache.get(d("B")) == "b"


def test_overwrite_at_capacity_does_not_evict(clock) -> None:  # type: ignore[no-untyped-def]
    cache = PermissionAwareCache(max_size=2, clock=clock)
    cache.set(d("A"), "a")
    cache.set(d("B"), "b")
    cache.set(d("A"), "a2")
    assert cache.get(d("A")) == "a2"
    assert cache.get(d("B")) == "b"
    assert cache.stats().evictions == 0


def test_overwrite_moves_entry_to_newest(clock) -> None:  # type: ignore[no-untyped-def]
    cache = PermissionAwareCache(max_size=2, clock=clock)
    cache.set(d("A"), "a")
    cache.set(d("B"), "b")
    cache.set(d("A"), "a2")
    cache.set(d("C"), "c")
    assert cache.get(d("B")) is None
    assert cache.get(d("A")) == "a2"


def test_expired_entries_reclaimed_before_live_ones(clock) -> None:  # type: ignore[no-untyped-def]
    cache = PermissionAwareCache(max_size=2, clock=clock)
    cache.set(d("A"), "a", ttl_ms=100_000)
    cache.set(d("B"), "b", ttl_ms=10)
    clock.advance(50)
    cache.set(d("C"), "c")
    assert cache.get(d("A")) == "a"
    assert cache.get(d("C")) == "c"
    assert cache.stats().evictions == 0


# ---------------------------------------------------------------------------
# invalidate
# ---------------------------------------------------------------------------

def test_invalidate_by_query_substring(cache: PermissionAwareCache) -> None:
    cache.set(d("GetFeed"), "feed")
    cache.set(d("GetUser"), "user")
    assert cache.invalidate(InvalidationPattern(query="Feed")) == 1
    assert cache.get(d("GetFeed")) is None
    assert cache.get(d("GetUser")) == "user"


def test_invalidate_keyword_form(cache: PermissionAwareCache) -> None:
    cache.set(d("GetFeed"), "feed")
    assert cache.invalidate(query="Feed") == 1


def test_invalidate_empty_pattern_is_noop(cache: PermissionAwareCache) -> None:
    cache.set(d("GetFeed"), "feed")
    assert cache.invalidate(InvalidationPattern()) == 0
    assert cache.invalidate() == 0
    assert cache.get(d("GetFeed")) == "feed"


def test_invalidate_by_user(cache: PermissionAwareCache) -> None:
    cache.set(d("GetFeed", user_id="u1"), "1")
    cache.set(d("GetFeed", user_id="u2"), "2")
    assert cache.invalidate(user_id="u1") == 1
    assert cache.get(d("GetFeed", user_id="u2")) == "2"


def test_invalidate_by_role(cache: PermissionAwareCache) -> None:
    cache.set(d("GetFeed", user_id="u1", role="admin"), "a")
    cache.set(d("GetUser", user_id="u1", role="admin"), "a")
    cache.set(d("GetFeed", user_id="u2", role="user"), "u")
    assert cache.invalidate(role="admin") == 2
    assert cache.get(d("GetFeed", user_id="u2", role="user")) == "u"


def test_invalidate_anonymous_entries_by_label(cache: PermissionAwareCache) -> None:
    cache.set(d("GetFeed", user_id=None, role=None), "public")
    cache.set(d("GetFeed", user_id="u1", role="user"), "private")
    assert cache.invalidate(user_id="anonymous") == 1
    assert cache.get(d("GetFeed", user_id="u1", role="user")) == "private"


def test_invalidate_fields_are_ored(cache: PermissionAwareCache) -> None:
    cache.set(d("GetFeed", user_id="u1", role="user"), "1")
    cache.set(d("GetUser", user_id="u2", role="admin"), "2")
    cache.set(d("GetUser", user_id="u3", role="user"), "3")
    assert cache.invalidate(query="Feed", role="admin") == 2
    assert cache.get(d("GetUser", user_id="u3", role="user")) == "3"


def test_invalidate_includes_expired_entries(cache: PermissionAwareCache, clock) -> None:  # type: ignore[no-untyped-def]
    cache.set(d("GetFeed"), "v", ttl_ms=10)
    clock.advance(100)
    assert cache.invalidate(query="Feed") == 1


# ---------------------------------------------------------------------------
# clear / stats
# ---------------------------------------------------------------------------

def test_clear(cache: PermissionAwareCache) -> None:
    cache.set(d("A"), "a")
    cache.set(d("B"), "b")
    cache.clear()
    assert cache.stats().size == 0
    assert cache.get(d("A")) is None
    assert cache.get(d("B")) is None


def test_stats_utilization(clock) -> None:  # type: ignore[no-untyped-def]
    cache = PermissionAwareCache(max_size=3, clock=clock)
    cache.set(d("A"), "a")
    stats = cache.stats()
    assert stats.size == 1
    assert stats.max_size == 3
    assert stats.utilization_percent == 33.33


def test_stats_counts_hits_and_misses(cache: PermissionAwareCache) -> None:
    cache.get(d())
    cache.set(d(), "v")
    cache.get(d())
    cache.get(d())
    stats = cache.stats()
    assert stats.hits == 2
    assert stats.misses == 1


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

def test_concurrent_sets_respect_bound() -> None:
    cache = PermissionAwareCache(max_size=50)

    def writer(n: int) -> None:
        for i in range(200):
            cache.set(d(f"Q{n}-{i}"), i)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert cache.stats().size == 50
