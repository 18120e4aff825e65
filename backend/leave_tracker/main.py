from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from leave_tracker.api.health import router as health_router
from leave_tracker.api.router import api_router
from leave_tracker.config import get_settings
from leave_tracker.exceptions import setup_exception_handlers
from leave_tracker.middleware import setup_middleware
from leave_tracker.repositories.memory import InMemoryRepository
from leave_tracker.services.container import build_services

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from leave_tracker.config import Settings
    from leave_tracker.repositories.base import LeaveRepository

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Settings) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO, format=LOG_FORMAT)


async def _build_repository(settings: Settings) -> LeaveRepository:
    if settings.persistence_backend == "sql":
        from leave_tracker.db import create_tables, get_session_factory
        from leave_tracker.repositories.sql import SqlRepository

        await create_tables()
        return SqlRepository(get_session_factory())
    return InMemoryRepository()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager for startup and shutdown."""
    settings = get_settings()
    configure_logging(settings)
    logger.info(
        "Starting %s v%s [%s] with %s persistence",
        settings.app_name,
        settings.app_version,
        settings.environment,
        settings.persistence_backend,
    )
    # Tests install their own services before the app starts.
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings, await _build_repository(settings))
    yield
    await app.state.services.workflow.wait_for_notifications()
    if settings.persistence_backend == "sql":
        from leave_tracker.db import dispose_engine

        await dispose_engine()
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    setup_middleware(application, settings)
    setup_exception_handlers(application)

    application.include_router(health_router)
    application.include_router(api_router)

    return application


app = create_app()
