"""Hierarchy-level predicates and how the endpoints apply them."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import pytest

from merendels.exceptions import ForbiddenError
from merendels.schemas.auth import AuthContext
from merendels.services.authorization import (
    MANAGER_LEVEL,
    ROLE_ADMIN_LEVEL,
    require_at_least_level,
    require_at_most_level,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from httpx import AsyncClient

    from merendels.models.user import User


def _auth(level: int | None) -> AuthContext:
    return AuthContext(user_id=uuid.uuid4(), email="who@example.com", hierarchy_level=level)


@pytest.mark.parametrize("level", [0, 1])
def test_manager_predicate_allows_senior_levels(level: int) -> None:
    auth = _auth(level)
    assert require_at_most_level(auth, MANAGER_LEVEL) is auth


@pytest.mark.parametrize("level", [2, 3, 7])
def test_manager_predicate_rejects_junior_levels(level: int) -> None:
    with pytest.raises(ForbiddenError):
        require_at_most_level(_auth(level), MANAGER_LEVEL)


@pytest.mark.parametrize("level", [2, 3])
def test_role_admin_predicate_allows_numerically_higher_levels(level: int) -> None:
    auth = _auth(level)
    assert require_at_least_level(auth, ROLE_ADMIN_LEVEL) is auth


@pytest.mark.parametrize("level", [0, 1])
def test_role_admin_predicate_rejects_lower_levels(level: int) -> None:
    with pytest.raises(ForbiddenError):
        require_at_least_level(_auth(level), ROLE_ADMIN_LEVEL)


@pytest.mark.parametrize("predicate", [require_at_most_level, require_at_least_level])
def test_missing_level_is_forbidden(predicate: Callable[[AuthContext, int], AuthContext]) -> None:
    with pytest.raises(ForbiddenError, match="No role"):
        predicate(_auth(None), 1)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("level", "expected"),
    [(0, 200), (1, 200), (2, 403), (None, 403)],
)
async def test_manager_endpoint_guard(
    async_client: AsyncClient,
    make_user: Callable[..., Awaitable[User]],
    headers_for: Callable[[User, int | None], dict[str, str]],
    level: int | None,
    expected: int,
) -> None:
    user = await make_user(level)
    response = await async_client.get("/api/requests", headers=headers_for(user, level))
    assert response.status_code == expected
    if expected == 403:
        assert response.json()["error"] == "ForbiddenError"


@pytest.mark.parametrize(
    ("level", "expected"),
    [(0, 403), (1, 403), (2, 201), (3, 201)],
)
async def test_role_write_guard_is_inverted(
    async_client: AsyncClient,
    make_user: Callable[..., Awaitable[User]],
    headers_for: Callable[[User, int | None], dict[str, str]],
    level: int,
    expected: int,
) -> None:
    user = await make_user(level)
    response = await async_client.post(
        "/api/user-roles",
        json={"name": "Intern", "hierarchy_level": 9},
        headers=headers_for(user, level),
    )
    assert response.status_code == expected


async def test_any_valid_token_reads_roles(
    async_client: AsyncClient,
    make_user: Callable[..., Awaitable[User]],
    headers_for: Callable[[User, int | None], dict[str, str]],
) -> None:
    user = await make_user(None)
    response = await async_client.get("/api/user-roles", headers=headers_for(user, None))
    assert response.status_code == 200
