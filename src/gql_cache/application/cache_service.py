from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, TypeVar

from gql_cache.domain.entities import (
    CacheKeyDescriptor,
    CacheStats,
    InvalidationPattern,
    RequestContext,
)
from gql_cache.domain.services import operation_identity
from gql_cache.infrastructure.cache import PermissionAwareCache
from gql_cache.infrastructure.graphql_client import GraphQLClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


def query_patterns(*fragments: str) -> tuple[InvalidationPattern, ...]:
    return tuple(InvalidationPattern(query=f) for f in fragments)


# Query patterns made stale by each mutation of the upstream schema.
# Matching is by substring on the stored query: "Feed" covers operation names
# like GetFeed or PublicFeed, "feed" covers documents selecting the feed field.
_FEED = ("Feed", "feed")
_POST = ("Post", "post")

DEFAULT_INVALIDATION_RULES: dict[str, tuple[InvalidationPattern, ...]] = {
    "createPost": query_patterns(*_FEED),
    "addComment": query_patterns(*_FEED, *_POST),
    "likePost": query_patterns(*_FEED, *_POST),
    "unlikePost": query_patterns(*_FEED, *_POST),
}


class CachedQueryService:
    """Read-through caching for queries and invalidation after mutations."""

    def __init__(
        self,
        cache: PermissionAwareCache,
        client: GraphQLClient,
        invalidation_rules: Mapping[str, Sequence[InvalidationPattern]] | None = None,
    ) -> None:
        self._cache = cache
        self._client = client
        self._rules = dict(
            invalidation_rules if invalidation_rules is not None else DEFAULT_INVALIDATION_RULES
        )

    @property
    def cache(self) -> PermissionAwareCache:
        return self._cache

    async def get_or_compute(
        self,
        descriptor: CacheKeyDescriptor,
        producer: Callable[[], Awaitable[T]],
        ttl_ms: int | None = None,
    ) -> T:
        """Return the cached value for descriptor, calling producer on a miss.

        A None result is returned but not stored. Exceptions from producer
        propagate and leave the cache untouched.
        """
        cached = self._cache.get(descriptor)
        if cached is not None:
            return cached  # type: ignore[no-any-return]

        value = await producer()
        if value is not None:
            self._cache.set(descriptor, value, ttl_ms=ttl_ms)
        return value

    async def query(
        self,
        query: str,
        context: RequestContext,
        variables: dict[str, Any] | None = None,
        operation_name: str | None = None,
        ttl_ms: int | None = None,
    ) -> dict[str, Any]:
        """Run a query as context, served from the cache when its key is held.

        The key combines the normalized document (and operation name) with
        variables and the caller's identity, role and permissions.
        """
        descriptor = context.descriptor(operation_identity(query, operation_name), variables)
        return await self.get_or_compute(
            descriptor,
            lambda: self._client.execute(
                query, variables=variables, context=context, operation_name=operation_name
            ),
            ttl_ms=ttl_ms,
        )

    async def mutate(
        self,
        mutation_name: str,
        mutation: str,
        context: RequestContext,
        variables: dict[str, Any] | None = None,
    ) -> tuple[dict[str, Any], int]:
        """Run a mutation upstream, then invalidate the reads it made stale.

        Returns (data, number of cache entries invalidated). Nothing is
        invalidated when the mutation fails.
        """
        data = await self._client.execute(mutation, variables=variables, context=context)
        invalidated = self.invalidate_for(mutation_name)
        return data, invalidated

    def invalidate_for(self, mutation_name: str) -> int:
        """Apply the invalidation rules registered for mutation_name."""
        patterns = self._rules.get(mutation_name, ())
        if not patterns:
            logger.debug("No invalidation rules for mutation %s", mutation_name)
            return 0
        return sum(self._cache.invalidate(p) for p in patterns)

    def invalidate(self, pattern: InvalidationPattern) -> int:
        return self._cache.invalidate(pattern)

    def clear(self) -> None:
        self._cache.clear()

    def stats(self) -> CacheStats:
        return self._cache.stats()
