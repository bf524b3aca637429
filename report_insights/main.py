"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from report_insights.config import get_settings
from report_insights.infrastructure.dependencies import (
    close_dependencies,
    get_model_provider,
    get_request_dispatcher,
)
from report_insights.infrastructure.logging.log_config import setup_logging
from report_insights.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan — configure logging, release shared clients on exit."""
    setup_logging()

    provider = get_model_provider()
    current = provider.get_current_config()
    primary = provider.get_primary_model()
    logger.info(
        "Analysis engine ready — model=%s primary=%s fallbacks=%d endpoint=%s",
        current.model,
        primary.id if primary else None,
        len(provider.get_fallback_models()),
        current.endpoint_url,
    )

    yield

    # Shutdown
    dispatcher = get_request_dispatcher()
    dropped = dispatcher.clear()
    if dropped:
        logger.info("Dropped %d queued analyses on shutdown", dropped)
    await dispatcher.join()
    await close_dependencies()


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount API routes
    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "report_insights.main:app",
        host="0.0.0.0",
        port=8020,
        reload=True,
    )
