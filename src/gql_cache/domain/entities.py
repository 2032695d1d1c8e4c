from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CacheKeyDescriptor:
    """Everything that identifies one cacheable response.

    Built from the authenticated request context, never from request payload
    fields: the role/user segregation of the cache depends on it.
    """

    query: str  # Operation name or normalized query text
    variables: Mapping[str, Any] | None = None  # None is equivalent to {}
    user_id: str | None = None  # None = anonymous caller
    role: str | None = None  # None = no role context
    permissions: Iterable[str] | None = None  # Order-insensitive; None = no permissions


@dataclass
class CacheEntry:
    """A stored payload plus the components its key was derived from."""

    data: Any
    inserted_at: float  # Milliseconds, from the owning cache's clock
    ttl_ms: int
    query: str
    user_label: str  # user_id, or ANONYMOUS_USER
    role_label: str  # role, or NO_ROLE

    def is_expired(self, now_ms: float) -> bool:
        return now_ms - self.inserted_at > self.ttl_ms


@dataclass(frozen=True)
class InvalidationPattern:
    """Selector for bulk invalidation. Fields are OR-ed; unset fields are ignored."""

    query: str | None = None  # Substring of the stored query
    user_id: str | None = None  # Exact match on the stored user label
    role: str | None = None  # Exact match on the stored role label

    @property
    def is_empty(self) -> bool:
        return not (self.query or self.user_id or self.role)

    def matches(self, entry: CacheEntry) -> bool:
        if self.query and self.query in entry.query:
            return True
        if self.user_id and entry.user_label == self.user_id:
            return True
        if self.role and entry.role_label == self.role:
            return True
        return False

    def to_dict(self) -> dict[str, str]:
        return {
            k: v
            for k, v in (("query", self.query), ("userId", self.user_id), ("role", self.role))
            if v
        }


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time utilization snapshot of a PermissionAwareCache."""

    size: int
    max_size: int
    utilization_percent: float
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "maxSize": self.max_size,
            "utilizationPercent": self.utilization_percent,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
        }


@dataclass(frozen=True)
class RequestContext:
    """Authenticated caller of a request: who they are and what they may see."""

    user_id: str | None = None
    role: str | None = None
    permissions: frozenset[str] = field(default_factory=frozenset)
    token: str | None = None  # Bearer token forwarded upstream; never part of the key

    @classmethod
    def anonymous(cls) -> RequestContext:
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def descriptor(
        self, query: str, variables: Mapping[str, Any] | None = None
    ) -> CacheKeyDescriptor:
        """Return the cache key descriptor for running query as this caller."""
        return CacheKeyDescriptor(
            query=query,
            variables=variables,
            user_id=self.user_id,
            role=self.role,
            permissions=self.permissions,
        )
