from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import jwt

from merendels.exceptions import AuthError
from merendels.schemas.auth import AuthContext

if TYPE_CHECKING:
    from merendels.config import Settings
    from merendels.models.user import User

logger = logging.getLogger(__name__)

_REQUIRED_CLAIMS = ["exp", "iat", "iss", "sub"]


class TokenService:
    """Issues and verifies stateless HMAC-signed bearer tokens."""

    def __init__(self, settings: Settings) -> None:
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm
        self._issuer = settings.jwt_issuer
        self._ttl = timedelta(hours=settings.token_ttl_hours)

    def issue(self, user: User, hierarchy_level: int | None, *, now: datetime | None = None) -> tuple[str, datetime]:
        """Sign a token for ``user`` and return it with its expiry time."""
        issued_at = now or datetime.now(UTC)
        expires_at = issued_at + self._ttl
        claims: dict[str, Any] = {
            "sub": str(user.id),
            "user_id": str(user.id),
            "email": user.email,
            "role_id": str(user.role_id) if user.role_id is not None else None,
            "hierarchy_level": hierarchy_level,
            "iat": issued_at,
            "exp": expires_at,
            "iss": self._issuer,
        }
        token = jwt.encode(claims, self._secret, algorithm=self._algorithm)
        return token, expires_at

    def verify(self, token: str) -> AuthContext:
        """Decode and check a token, raising AuthError on any failure.

        Only the configured algorithm is accepted, so unsigned tokens and
        tokens signed with another algorithm are rejected.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            logger.warning("Rejected bearer token: %s", type(exc).__name__)
            raise AuthError("Invalid token") from exc

        try:
            return AuthContext(
                user_id=uuid.UUID(claims.get("user_id") or claims["sub"]),
                email=claims.get("email") or "",
                role_id=claims.get("role_id"),
                hierarchy_level=claims.get("hierarchy_level"),
            )
        except (TypeError, ValueError) as exc:
            raise AuthError("Invalid token claims") from exc

    def validate(self, token: str) -> dict[str, Any]:
        """Return the user id and email a valid token was issued for."""
        context = self.verify(token)
        return {"user_id": context.user_id, "email": context.email}
