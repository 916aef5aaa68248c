"""
Exception handlers mapping application errors to HTTP responses.

Error body:
    {"timestamp": "...", "status": 404, "error": "Not Found", "message": "..."}
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from groundcontrol.core.config import settings
from groundcontrol.core.exceptions import ConfigurationError, GroundControlError
from groundcontrol.utils.timezone import utc_now

logger = structlog.get_logger()


def error_body(status: int, error: str, message: str) -> dict:
    return {
        "timestamp": utc_now().isoformat(),
        "status": status,
        "error": error,
        "message": message,
    }


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for application and unexpected errors."""

    @app.exception_handler(GroundControlError)
    async def application_error_handler(request: Request, exc: GroundControlError):
        if isinstance(exc, ConfigurationError):
            logger.error("Configuration error", path=request.url.path, error=exc.message)
        else:
            logger.info(
                "Request rejected",
                path=request.url.path,
                status=exc.status_code,
                error=exc.message,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.status_code, exc.error, exc.message),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.exception("Unhandled error", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_body(
                500,
                "Internal Server Error",
                str(exc) if settings.debug else "An unexpected error occurred",
            ),
        )
