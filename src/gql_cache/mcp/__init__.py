from __future__ import annotations

import httpx
from mcp.server.fastmcp import FastMCP

from gql_cache.application.cache_service import CachedQueryService
from gql_cache.config import Settings
from gql_cache.infrastructure.cache import PermissionAwareCache
from gql_cache.infrastructure.graphql_client import GraphQLClient
from gql_cache.mcp.resources import register_resources
from gql_cache.mcp.tools import register_tools


def create_mcp_app(settings: Settings | None = None) -> FastMCP:
    """Create and configure the FastMCP application with all services wired.

    The cache is built here, once per process, and injected downward.
    """
    settings = settings or Settings.from_env()
    cache = PermissionAwareCache(
        max_size=settings.cache_max_size,
        default_ttl_ms=settings.cache_default_ttl_ms,
    )
    http_client = httpx.AsyncClient(timeout=settings.upstream_timeout, follow_redirects=True)
    graphql_client = GraphQLClient(http_client=http_client, endpoint=settings.upstream_url)

    cache_svc = CachedQueryService(cache, graphql_client)

    mcp = FastMCP("GraphQL Permission Cache", stateless_http=True)
    register_tools(mcp, cache_svc, settings.request_context())
    register_resources(mcp, cache_svc)
    return mcp
