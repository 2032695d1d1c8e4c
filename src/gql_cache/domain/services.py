from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from gql_cache.domain.entities import CacheKeyDescriptor
from gql_cache.domain.value_objects import ANONYMOUS_USER, NO_ROLE

_OPERATION_RE = re.compile(r"^\s*(query|mutation|subscription)\b\s*([_A-Za-z][_0-9A-Za-z]*)?")
# A block string, a plain string, or a whitespace run outside both
_STRING_OR_SPACE_RE = re.compile(r'("""(?:\\"""|[\s\S])*?"""|"(?:\\.|[^"\\\n])*")|\s+')


def _plain(value: Any) -> Any:
    """Unwrap str-valued enums (e.g. Role.ADMIN) to their plain string."""
    return value.value if isinstance(value, Enum) else value


def _dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def canonical_variables(variables: Mapping[str, Any] | None) -> str:
    """Serialize variables as key-sorted compact JSON (nested objects included).

    None and an empty mapping serialize identically.
    """
    return _dumps(dict(variables) if variables else {})


def canonical_permissions(permissions: Iterable[str] | None) -> list[str]:
    """Return permissions deduplicated and sorted; None is the empty set."""
    if not permissions:
        return []
    return sorted({str(_plain(p)) for p in permissions})


def user_label(user_id: str | None) -> str:
    """Label an entry's user for invalidation matching; None becomes ANONYMOUS_USER."""
    return ANONYMOUS_USER if user_id is None else str(_plain(user_id))


def role_label(role: str | None) -> str:
    """Label an entry's role for invalidation matching; None becomes NO_ROLE."""
    return NO_ROLE if role is None else str(_plain(role))


def derive_key(descriptor: CacheKeyDescriptor) -> str:
    """Return the cache key for a descriptor.

    The key is the compact JSON array
    [query, canonical variables, user_id, role, sorted permissions].
    JSON quoting keeps the components apart whatever they contain, and absent
    user/role encode as null so they never collide with an empty string or
    with the "anonymous"/"none" labels.
    """
    user_id = descriptor.user_id
    role = descriptor.role
    parts = [
        descriptor.query,
        canonical_variables(descriptor.variables),
        None if user_id is None else str(_plain(user_id)),
        None if role is None else str(_plain(role)),
        canonical_permissions(descriptor.permissions),
    ]
    return _dumps(parts)


def normalize_query(text: str) -> str:
    """Collapse whitespace runs in a GraphQL document to single spaces.

    String and block-string literals are passed through untouched, so
    documents differing only inside a literal stay distinct.
    """
    return _STRING_OR_SPACE_RE.sub(lambda m: m.group(1) or " ", text).strip()


def operation_identity(query: str, operation_name: str | None = None) -> str:
    """Return the query component of the cache key for a GraphQL document.

    The normalized document text, prefixed with the selected operation name
    when one is given (documents may hold several operations).
    """
    normalized = normalize_query(query)
    return f"{operation_name}|{normalized}" if operation_name else normalized


def parse_operation(text: str) -> tuple[str, str | None]:
    """Return (operation_type, operation_name) for a GraphQL document.

    An anonymous shorthand document ("{ feed { ... } }") is a query with no name.
    Raises ValueError when the document is empty.
    """
    if not text or not text.strip():
        raise ValueError("Empty GraphQL document")
    match = _OPERATION_RE.match(text)
    if match is None:
        return "query", None
    return match.group(1), match.group(2)
