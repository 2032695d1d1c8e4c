from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from mcp import types
from mcp.server.fastmcp import FastMCP

from gql_cache.application.cache_service import CachedQueryService
from gql_cache.domain.entities import InvalidationPattern, RequestContext
from gql_cache.domain.exceptions import GraphQLResponseError, UpstreamError, ValidationError
from gql_cache.domain.services import parse_operation

logger = logging.getLogger(__name__)

_RESULT_URI = "mcp://gql-cache/result"


def _as_resource(json_str: str) -> list[types.EmbeddedResource]:
    """Wrap a JSON string as an embedded resource so the LLM does not narrate it."""
    return [
        types.EmbeddedResource(
            type="resource",
            resource=types.TextResourceContents(
                uri=_RESULT_URI,  # type: ignore[arg-type]
                mimeType="application/json",
                text=json_str,
            ),
        )
    ]


def _json(payload: dict[str, Any]) -> list[types.EmbeddedResource]:
    return _as_resource(json.dumps(payload, default=str, ensure_ascii=False))


def _error_json(message: str) -> str:
    return json.dumps({"error": message}, ensure_ascii=False)


def _handle_exception(exc: Exception) -> list[types.EmbeddedResource]:
    if isinstance(exc, ValidationError):
        return _as_resource(_error_json(str(exc)))
    if isinstance(exc, GraphQLResponseError):
        return _json({"error": str(exc), "errors": exc.errors})
    if isinstance(exc, UpstreamError):
        if exc.status_code in (401, 403):
            return _as_resource(_error_json("Upstream rejected the server's credentials."))
        if exc.status_code == 400:
            return _as_resource(_error_json("Invalid request. Please check the GraphQL document."))
        if exc.status_code == 404:
            return _as_resource(_error_json("GraphQL endpoint not found."))
        if exc.status_code >= 500:
            return _as_resource(
                _error_json(f"Upstream API error ({exc.status_code}). Please try again later.")
            )
        return _as_resource(_error_json(str(exc)))
    if isinstance(exc, httpx.TimeoutException):
        return _as_resource(_error_json("Request timed out. Please try again."))
    if isinstance(exc, ValueError):
        return _as_resource(_error_json(str(exc)))
    logger.exception("Unexpected error in MCP tool: %s", exc)
    return _as_resource(_error_json("An unexpected error occurred."))


def _validate_document(document: str, expected_type: str) -> str:
    if not document or not document.strip():
        raise ValidationError("GraphQL document cannot be empty")
    operation_type, _ = parse_operation(document)
    if operation_type != expected_type:
        raise ValidationError(f"Expected a {expected_type} document, got a {operation_type}")
    return document.strip()


def _validate_variables(variables: Any) -> dict[str, Any] | None:
    if variables is None:
        return None
    if not isinstance(variables, dict):
        raise ValidationError("variables must be a JSON object")
    return variables


def register_tools(
    mcp: FastMCP, cache_svc: CachedQueryService, context: RequestContext
) -> None:
    """Bind all @mcp.tool decorators. Called once during server setup.

    context is the server's authenticated principal; tools never take
    identity or role from their arguments.
    """

    @mcp.tool()
    async def run_query(
        query: str,
        variables: dict[str, Any] | None = None,
        operation_name: str | None = None,
        ttl_ms: int | None = None,
    ) -> list[types.EmbeddedResource]:
        """Run a GraphQL query upstream, served from the permission-aware cache when possible.

        Args:
            query: GraphQL query document.
            variables: Optional JSON object of operation variables.
            operation_name: Operation to run when the document holds several.
            ttl_ms: Optional cache lifetime for this result in milliseconds.
        """
        try:
            document = _validate_document(query, "query")
            data = await cache_svc.query(
                document,
                context,
                variables=_validate_variables(variables),
                operation_name=operation_name,
                ttl_ms=ttl_ms,
            )
            return _json({"data": data})
        except Exception as exc:
            return _handle_exception(exc)

    @mcp.tool()
    async def run_mutation(
        mutation_name: str,
        mutation: str,
        variables: dict[str, Any] | None = None,
    ) -> list[types.EmbeddedResource]:
        """Run a GraphQL mutation upstream and invalidate the cached reads it affects.

        Args:
            mutation_name: Schema mutation field, e.g. "likePost"; selects invalidation rules.
            mutation: GraphQL mutation document.
            variables: Optional JSON object of operation variables.
        """
        try:
            if not mutation_name.strip():
                return _as_resource(_error_json("mutation_name cannot be empty"))
            document = _validate_document(mutation, "mutation")
            data, invalidated = await cache_svc.mutate(
                mutation_name.strip(),
                document,
                context,
                variables=_validate_variables(variables),
            )
            return _json({"data": data, "invalidated": invalidated})
        except Exception as exc:
            return _handle_exception(exc)

    @mcp.tool()
    async def cache_stats() -> list[types.EmbeddedResource]:
        """Report cache size, capacity, utilization and hit/miss counters."""
        try:
            return _json(cache_svc.stats().to_dict())
        except Exception as exc:
            return _handle_exception(exc)

    @mcp.tool()
    async def invalidate_cache(
        query: str | None = None,
        user_id: str | None = None,
        role: str | None = None,
    ) -> list[types.EmbeddedResource]:
        """Delete cached entries matching any of the given fields.

        Args:
            query: Substring of the cached operation (e.g. "Feed").
            user_id: Exact user id; "anonymous" selects entries of unauthenticated callers.
            role: Exact role; "none" selects entries stored without a role.
        """
        try:
            pattern = InvalidationPattern(query=query, user_id=user_id, role=role)
            if pattern.is_empty:
                return _as_resource(
                    _error_json(
                        "Give at least one of query, user_id or role; "
                        "use clear_cache to drop everything"
                    )
                )
            return _json({"invalidated": cache_svc.invalidate(pattern)})
        except Exception as exc:
            return _handle_exception(exc)

    @mcp.tool()
    async def clear_cache() -> list[types.EmbeddedResource]:
        """Drop every cached entry."""
        try:
            cache_svc.clear()
            return _json({"cleared": True, "stats": cache_svc.stats().to_dict()})
        except Exception as exc:
            return _handle_exception(exc)
