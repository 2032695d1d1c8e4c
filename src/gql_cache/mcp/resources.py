from __future__ import annotations

import json

from mcp.server.fastmcp import FastMCP

from gql_cache.application.cache_service import CachedQueryService

STATS_URI = "cache://gql-cache/stats"


def register_resources(mcp: FastMCP, cache_svc: CachedQueryService) -> None:
    """Register read-only cache resources. Called once during server setup."""

    @mcp.resource(STATS_URI, mime_type="application/json")
    def cache_stats_resource() -> str:
        """Current size, utilization and hit counters of the response cache."""
        return json.dumps(cache_svc.stats().to_dict())
