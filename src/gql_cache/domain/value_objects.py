from __future__ import annotations

from enum import Enum

# Labels used when matching invalidation patterns against entries stored
# without a user or role.
ANONYMOUS_USER = "anonymous"
NO_ROLE = "none"


class Role(str, Enum):
    """Caller roles issued by the authentication layer.

    Using (str, Enum) for Python 3.10 compatibility (StrEnum requires 3.11+).
    Any other role string is accepted by the cache; these are the known ones.
    """

    ADMIN = "admin"
    USER = "user"
