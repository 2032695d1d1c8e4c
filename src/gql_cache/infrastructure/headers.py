from __future__ import annotations

from uuid import uuid4

USER_AGENT = "gql-permission-cache/0.1"


def make_headers(token: str | None = None) -> dict[str, str]:
    """Return the headers sent with every upstream GraphQL request.

    x-request-id is freshly generated on every call.
    Authorization is only present when a bearer token is given; anonymous
    callers hit the upstream's public path.
    """
    headers = {
        "Accept": "application/graphql-response+json, application/json",
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
        "x-request-id": str(uuid4()),
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers
