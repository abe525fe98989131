import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    default_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status_code
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed or out-of-policy input the client can fix."""

    default_status_code = status.HTTP_400_BAD_REQUEST


class AuthError(AppError):
    """Bad credentials or an invalid/expired token."""

    default_status_code = status.HTTP_401_UNAUTHORIZED


class RateLimitError(AppError):
    """Too many recent failed login attempts."""

    default_status_code = status.HTTP_429_TOO_MANY_REQUESTS


class ForbiddenError(AppError):
    """Authenticated but not entitled to act on the resource."""

    default_status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    default_status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    """State-machine or uniqueness violation."""

    default_status_code = status.HTTP_409_CONFLICT


class InsufficientBalanceError(AppError):
    """The leave balance cannot cover the requested days."""

    default_status_code = status.HTTP_400_BAD_REQUEST


class InternalError(AppError):
    """Storage or transport failure not attributable to the client."""

    default_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(),
        headers=headers,
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


async def _database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Unhandled database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error=InternalError.__name__,
            detail="Internal storage error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _database_exception_handler)  # type: ignore[arg-type]
