# ruff: noqa: B008
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from merendels.config import Settings
from merendels.db import SessionFactoryDep
from merendels.exceptions import AuthError
from merendels.schemas.auth import AuthContext
from merendels.services.approval import ApprovalEngine
from merendels.services.attendance import AttendanceSequencer
from merendels.services.authorization import (
    MANAGER_LEVEL,
    ROLE_ADMIN_LEVEL,
    require_at_least_level,
    require_at_most_level,
)
from merendels.services.balance import LeaveBalanceLedger
from merendels.services.credential import CredentialService
from merendels.services.request import RequestLifecycleManager
from merendels.services.role import RoleService
from merendels.services.token import TokenService
from merendels.services.user import UserService

bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    """Return the settings the application was created with."""
    settings: Settings = request.app.state.settings
    return settings


SettingsDep = Annotated[Settings, Depends(get_app_settings)]

# ---------------------------------------------------------------------------
# Service providers
# ---------------------------------------------------------------------------


def get_token_service(settings: SettingsDep) -> TokenService:
    return TokenService(settings)


TokenServiceDep = Annotated[TokenService, Depends(get_token_service)]


def get_credential_service(
    factory: SessionFactoryDep, settings: SettingsDep, tokens: TokenServiceDep
) -> CredentialService:
    return CredentialService(factory, settings, tokens)


def get_ledger(factory: SessionFactoryDep, settings: SettingsDep) -> LeaveBalanceLedger:
    return LeaveBalanceLedger(factory, settings)


LedgerDep = Annotated[LeaveBalanceLedger, Depends(get_ledger)]


def get_approval_engine(factory: SessionFactoryDep, settings: SettingsDep, ledger: LedgerDep) -> ApprovalEngine:
    return ApprovalEngine(factory, settings, ledger)


def get_request_manager(
    factory: SessionFactoryDep, settings: SettingsDep, ledger: LedgerDep
) -> RequestLifecycleManager:
    return RequestLifecycleManager(factory, settings, ledger)


def get_attendance_sequencer(factory: SessionFactoryDep, settings: SettingsDep) -> AttendanceSequencer:
    return AttendanceSequencer(factory, settings)


def get_role_service(factory: SessionFactoryDep, settings: SettingsDep) -> RoleService:
    return RoleService(factory, settings)


def get_user_service(factory: SessionFactoryDep, settings: SettingsDep) -> UserService:
    return UserService(factory, settings)


CredentialServiceDep = Annotated[CredentialService, Depends(get_credential_service)]
ApprovalEngineDep = Annotated[ApprovalEngine, Depends(get_approval_engine)]
RequestManagerDep = Annotated[RequestLifecycleManager, Depends(get_request_manager)]
AttendanceDep = Annotated[AttendanceSequencer, Depends(get_attendance_sequencer)]
RoleServiceDep = Annotated[RoleService, Depends(get_role_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]

# ---------------------------------------------------------------------------
# Authentication and authorization
# ---------------------------------------------------------------------------


async def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Extract the raw bearer token, rejecting requests without one."""
    if credentials is None or not credentials.credentials:
        raise AuthError("Missing bearer token")
    return credentials.credentials


BearerTokenDep = Annotated[str, Depends(get_bearer_token)]


async def get_auth_context(token: BearerTokenDep, tokens: TokenServiceDep) -> AuthContext:
    """Verify the bearer token and return the identity it carries."""
    return tokens.verify(token)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_manager(auth: AuthDep) -> AuthContext:
    """Require a hierarchy level of manager or more senior."""
    return require_at_most_level(auth, MANAGER_LEVEL)


ManagerDep = Annotated[AuthContext, Depends(require_manager)]


async def require_role_admin(auth: AuthDep) -> AuthContext:
    """Guard for role administration, which checks the level from below."""
    return require_at_least_level(auth, ROLE_ADMIN_LEVEL)


RoleAdminDep = Annotated[AuthContext, Depends(require_role_admin)]
