"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
import structlog

from groundcontrol.api.errors import register_exception_handlers
from groundcontrol.api.middleware.logging import LoggingMiddleware
from groundcontrol.api.middleware.request_id import RequestIdMiddleware
from groundcontrol.api.routes import router as api_router
from groundcontrol.core.config import settings
from groundcontrol.core.logging import configure_logging
from groundcontrol.models.database import close_db, init_db

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    logger.info(
        "Application starting",
        environment=settings.environment,
        feature_backend=settings.features.backend,
    )

    # Outside development the schema comes from alembic migrations
    if settings.is_development and settings.features.backend == "database":
        await init_db()

    yield

    await close_db()
    logger.info("Application stopped")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Middleware (last added is outermost)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # Routes
    app.include_router(api_router, prefix="/api")

    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """Quick health check endpoint (for load balancers)."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "groundcontrol.main:app",
        host=settings.host,
        port=settings.port,
    )
