from __future__ import annotations

from typing import TYPE_CHECKING

from merendels.exceptions import ForbiddenError

if TYPE_CHECKING:
    from merendels.schemas.auth import AuthContext

# Lower hierarchy levels carry more authority: 0 is the top of the organisation.
MANAGER_LEVEL = 1
ROLE_ADMIN_LEVEL = 2


def _level_of(auth: AuthContext) -> int:
    if auth.hierarchy_level is None:
        raise ForbiddenError("No role assigned")
    return auth.hierarchy_level


def require_at_most_level(auth: AuthContext, level: int) -> AuthContext:
    """Allow callers whose hierarchy level is ``level`` or more senior."""
    if _level_of(auth) > level:
        raise ForbiddenError("Insufficient hierarchy level")
    return auth


def require_at_least_level(auth: AuthContext, level: int) -> AuthContext:
    """Allow callers whose hierarchy level is ``level`` or numerically higher.

    This is the opposite direction to ``require_at_most_level``; role
    administration is guarded this way.
    """
    if _level_of(auth) < level:
        raise ForbiddenError("Insufficient hierarchy level")
    return auth
