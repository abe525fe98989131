from fastapi import APIRouter

from merendels.api.approvals import approvals_router
from merendels.api.attendance import attendance_router
from merendels.api.auth import auth_router
from merendels.api.balances import balances_router
from merendels.api.requests import requests_router
from merendels.api.roles import roles_router
from merendels.api.users import users_router

api_router = APIRouter()
api_router.include_router(auth_router)
api_router.include_router(requests_router)
api_router.include_router(approvals_router)
api_router.include_router(attendance_router)
api_router.include_router(roles_router)
api_router.include_router(balances_router)
api_router.include_router(users_router)
