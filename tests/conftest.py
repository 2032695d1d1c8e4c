"""Shared pytest fixtures for the GraphQL permission cache test suite."""
from __future__ import annotations

import pytest

from gql_cache.domain.entities import RequestContext
from gql_cache.infrastructure.cache import PermissionAwareCache


class FakeClock:
    """Manually advanced millisecond clock for TTL tests."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> PermissionAwareCache:
    """Cache with a 100-entry bound, 60 s default TTL and the fake clock."""
    return PermissionAwareCache(max_size=100, default_ttl_ms=60_000, clock=clock)


@pytest.fixture
def admin_context() -> RequestContext:
    return RequestContext(
        user_id="u1",
        role="admin",
        permissions=frozenset({"read:analytics", "read:posts"}),
        token="admin-token",
    )


@pytest.fixture
def user_context() -> RequestContext:
    return RequestContext(
        user_id="u2",
        role="user",
        permissions=frozenset({"read:posts"}),
        token="user-token",
    )


@pytest.fixture
def sample_feed_data() -> dict:  # type: ignore[type-arg]
    """Data object of a GetFeed response as the upstream returns it."""
    return {
        "feed": {
            "edges": [
                {
                    "node": {
                        "id": "p1",
                        "content": "Hello GraphQL",
                        "createdAt": "2026-02-24T14:30:00.000Z",
                        "likeCount": 3,
                        "commentCount": 1,
                    },
                    "cursor": "cDE=",
                }
            ],
            "pageInfo": {"hasNextPage": False, "endCursor": "cDE="},
            "totalCount": 1,
        }
    }
