from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from merendels.api.health import router as health_router
from merendels.api.router import api_router
from merendels.config import get_settings
from merendels.db import create_engine, create_session_factory
from merendels.exceptions import setup_exception_handlers
from merendels.middleware import setup_middleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from merendels.config import Settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager for startup and shutdown."""
    settings: Settings = app.state.settings
    logger.info("Starting %s v%s [%s]", settings.app_name, settings.app_version, settings.environment)
    yield
    engine = app.state.engine
    if engine is not None:
        await engine.dispose()
    logger.info("Shutting down %s", settings.app_name)


def create_app(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    """Application factory.

    The engine and session factory belong to the application instance and
    are released with it. Passing a ``session_factory`` reuses an existing
    one (the caller then owns its engine).
    """
    settings = settings or get_settings()
    settings.check_secrets()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    engine = None
    if session_factory is None:
        engine = create_engine(settings)
        session_factory = create_session_factory(engine)
    application.state.settings = settings
    application.state.engine = engine
    application.state.session_factory = session_factory

    setup_middleware(application, settings)
    setup_exception_handlers(application)

    application.include_router(health_router)
    application.include_router(api_router)

    return application
