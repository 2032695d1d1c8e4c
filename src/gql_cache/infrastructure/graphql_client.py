from __future__ import annotations

from typing import Any

import httpx

from gql_cache.domain.entities import RequestContext
from gql_cache.domain.exceptions import GraphQLResponseError, UpstreamError
from gql_cache.infrastructure.headers import make_headers

DEFAULT_ENDPOINT = "http://localhost:4000/graphql"
DEFAULT_TIMEOUT = 15.0  # seconds


class GraphQLClient:
    """HTTP client for the upstream GraphQL endpoint.

    Every call goes upstream; caching is the caller's concern.
    A single httpx.AsyncClient instance is used throughout the process lifetime.
    """

    def __init__(self, http_client: httpx.AsyncClient, endpoint: str = DEFAULT_ENDPOINT) -> None:
        self._http = http_client
        self._endpoint = endpoint

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def execute(
        self,
        document: str,
        variables: dict[str, Any] | None = None,
        context: RequestContext | None = None,
        operation_name: str | None = None,
    ) -> dict[str, Any]:
        """POST a query or mutation as the given caller and return its data object.

        1. Send {"query", "variables", "operationName"} with the caller's bearer token.
        2. Raise UpstreamError on non-2xx status.
        3. Raise GraphQLResponseError when the body carries an errors array.
        4. Return data ({} when the upstream sends none).
        """
        context = context or RequestContext.anonymous()
        body: dict[str, Any] = {"query": document, "variables": variables or {}}
        if operation_name:
            body["operationName"] = operation_name

        response = await self._http.post(
            self._endpoint, json=body, headers=make_headers(context.token)
        )
        self._raise_for_status(response)
        payload: dict[str, Any] = response.json()
        errors = payload.get("errors")
        if errors:
            raise GraphQLResponseError(errors)
        data: dict[str, Any] = payload.get("data") or {}
        return data

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Raise UpstreamError for non-2xx responses."""
        if response.status_code in (401, 403):
            raise UpstreamError(
                response.status_code,
                f"Upstream rejected credentials ({response.status_code})",
            )
        if response.status_code >= 400:
            raise UpstreamError(response.status_code)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()
