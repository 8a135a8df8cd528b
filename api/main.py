"""
FastAPI application initialization
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from api.container import ServiceContainer, build_container
from api.middleware import RequestContextMiddleware
from api.routes import cubby, data, health, sync
from core.config import Settings, settings
from core.logging import setup_logging
import logging

logger = logging.getLogger(__name__)


def create_app(container: Optional[ServiceContainer] = None, config: Settings = settings) -> FastAPI:
    """
    Build the application.

    Without a container the services are wired from settings at startup,
    the scheduler is started (unless disabled) and everything is closed at
    shutdown. An injected container is used as-is and left to its owner.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = container is None
        app.state.container = container or build_container(config)

        logger.info("Starting facility sync API")
        logger.info(f"Environment: {config.ENVIRONMENT}")
        logger.info(
            f"Database: {config.DATABASE_URL.split('@')[1] if '@' in config.DATABASE_URL else 'configured'}"
        )

        if owned and config.SCHEDULER_ENABLED:
            app.state.container.scheduler.start()

        yield

        logger.info("Shutting down facility sync API")
        if owned:
            await app.state.container.close()

    app = FastAPI(
        title="Facility Sync API",
        description="Warehouse and PMS synchronization for facility, tenant and lease data",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)

    app.include_router(health.router)
    app.include_router(cubby.router)
    app.include_router(sync.router)
    app.include_router(data.router)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "Facility Sync API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "cubby": "/cubby",
                "sync": "/sync",
                "facilities": "/facilities",
                "tenants": "/tenants",
            }
        }

    return app


setup_logging()
app = create_app()
