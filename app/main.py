"""
FastAPI application factory.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi_pagination import add_pagination

from app.config import get_settings
from app.core.app_state import AppState
from app.infra.logging_config import LoggingConfig, get_logger
from app.routers.chats_router import chats_router
from app.routers.events import events_router
from app.routers.media_router import media_router
from app.routers.sessions_router import sessions_router
from app.routers.system import router as system_router


def create_app(testing: bool = False, state: Optional[AppState] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    LoggingConfig(level=settings.log_level, log_format=settings.log_format)
    logger = get_logger(__name__)
    tracker = state or AppState(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s...", settings.app_name)
        if settings.session_autoload and not testing:
            await tracker.supervisor.load_all()
        yield
        logger.info("Shutting down, closing all sessions...")
        await tracker.supervisor.shutdown()

    app = FastAPI(
        title=settings.app_name,
        description="WhatsApp message ingestion and chat tracking service",
        lifespan=lifespan,
    )
    app.state.tracker = tracker

    app.include_router(sessions_router)
    app.include_router(media_router)
    app.include_router(chats_router)
    app.include_router(events_router)
    app.include_router(system_router)
    add_pagination(app)

    logger.info(
        "Application created",
        extra={
            "extra_data": {
                "app_name": settings.app_name,
                "environment": settings.environment,
                "client_configured": settings.whatsapp_client_factory is not None,
            }
        },
    )
    return app


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(create_app(), host="0.0.0.0", port=settings.port)
