from __future__ import annotations

from typing import Any


class GqlCacheError(Exception):
    """Base exception for all permission-aware cache errors."""


class InvalidConfigurationError(GqlCacheError, ValueError):
    """Raised when cache options or settings are out of range or unparseable."""


class UpstreamError(GqlCacheError):
    """Raised when the upstream GraphQL endpoint returns an unexpected HTTP error status."""

    def __init__(self, status_code: int, message: str = "") -> None:
        self.status_code = status_code
        super().__init__(message or f"Upstream GraphQL error ({status_code})")


class GraphQLResponseError(GqlCacheError):
    """Raised when the upstream answers 2xx but the body carries a GraphQL errors array."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        self.errors = errors
        messages = "; ".join(str(e.get("message", e)) for e in errors)
        super().__init__(f"GraphQL errors: {messages}" if messages else "GraphQL errors")


class ValidationError(GqlCacheError):
    """Raised when tool input fails validation before any upstream call."""
