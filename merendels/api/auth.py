from __future__ import annotations

from fastapi import APIRouter, status

from merendels.api.deps import AuthDep, BearerTokenDep, CredentialServiceDep, TokenServiceDep
from merendels.schemas.auth import (
    ChangePasswordPayload,
    LoginPayload,
    MessageResponse,
    ProfileResponse,
    RegisterPayload,
    TokenResponse,
    TokenValidationResponse,
)

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


@auth_router.post("/login", response_model=TokenResponse)
async def login(payload: LoginPayload, credentials: CredentialServiceDep) -> TokenResponse:
    """Exchange email and password for a bearer token."""
    return await credentials.login(payload.email, payload.password)


@auth_router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterPayload, credentials: CredentialServiceDep) -> TokenResponse:
    """Create an account and log it in."""
    return await credentials.register(payload)


@auth_router.put("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordPayload,
    auth: AuthDep,
    credentials: CredentialServiceDep,
) -> MessageResponse:
    await credentials.change_password(auth.user_id, payload.current_password, payload.new_password)
    return MessageResponse(message="Password changed")


@auth_router.get("/profile", response_model=ProfileResponse)
async def profile(auth: AuthDep, credentials: CredentialServiceDep) -> ProfileResponse:
    """Return the authenticated user with role details."""
    return await credentials.get_profile(auth.user_id)


@auth_router.post("/logout", response_model=MessageResponse)
async def logout(auth: AuthDep) -> MessageResponse:
    """Acknowledge a logout. Tokens are stateless, so the client discards its own."""
    return MessageResponse(message="Logged out")


@auth_router.post("/validate", response_model=TokenValidationResponse)
async def validate_token(token: BearerTokenDep, tokens: TokenServiceDep) -> TokenValidationResponse:
    claims = tokens.validate(token)
    return TokenValidationResponse(user_id=claims["user_id"], email=claims["email"])
