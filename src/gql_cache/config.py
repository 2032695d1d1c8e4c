from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from gql_cache.domain.entities import RequestContext
from gql_cache.domain.exceptions import InvalidConfigurationError
from gql_cache.infrastructure.cache import DEFAULT_MAX_SIZE, DEFAULT_TTL_MS
from gql_cache.infrastructure.graphql_client import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidConfigurationError(f"{name} must be an integer, got {raw!r}")


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise InvalidConfigurationError(f"{name} must be a number, got {raw!r}")


def _optional(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name, "").strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    """Runtime settings, read from the environment by from_env()."""

    upstream_url: str = DEFAULT_ENDPOINT
    upstream_timeout: float = DEFAULT_TIMEOUT  # seconds
    cache_max_size: int = DEFAULT_MAX_SIZE
    cache_default_ttl_ms: int = DEFAULT_TTL_MS

    # Principal the server acts as upstream; also the cache context of its tools
    user_id: str | None = None
    role: str | None = None
    permissions: frozenset[str] = field(default_factory=frozenset)
    token: str | None = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        """Build Settings from GQL_* environment variables.

        Raises InvalidConfigurationError on unparseable numbers. Range checks
        are left to PermissionAwareCache so they fail in one place.
        """
        env = os.environ if env is None else env
        permissions = frozenset(
            p.strip() for p in env.get("GQL_PERMISSIONS", "").split(",") if p.strip()
        )
        return cls(
            upstream_url=_optional(env, "GQL_UPSTREAM_URL") or DEFAULT_ENDPOINT,
            upstream_timeout=_float(env, "GQL_UPSTREAM_TIMEOUT", DEFAULT_TIMEOUT),
            cache_max_size=_int(env, "GQL_CACHE_MAX_SIZE", DEFAULT_MAX_SIZE),
            cache_default_ttl_ms=_int(env, "GQL_CACHE_DEFAULT_TTL_MS", DEFAULT_TTL_MS),
            user_id=_optional(env, "GQL_USER_ID"),
            role=_optional(env, "GQL_ROLE"),
            permissions=permissions,
            token=_optional(env, "GQL_TOKEN"),
        )

    def request_context(self) -> RequestContext:
        return RequestContext(
            user_id=self.user_id,
            role=self.role,
            permissions=self.permissions,
            token=self.token,
        )
