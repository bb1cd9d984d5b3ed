"""
Main FastAPI application module.
"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.health import router as health_router
from src.api.photos import router as photos_router
from src.core.config import get_config
from src.core.errors import InternalError, MethodNotAllowedError, NotFoundError, RelayError
from src.core.logging import get_logger, setup_logging
from src.core.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from src.services.photo_relay import build_error_response

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for startup and shutdown events.
    """
    logger.info("Starting application...")

    config = get_config()
    app.state.config = config

    logger.info(
        f"Application started successfully | "
        f"Host: {config.host} | Port: {config.port} | "
        f"Debug: {config.debug} | Max file size: {config.max_file_size_mb}MB"
    )

    yield

    logger.info("Application shutdown complete")


def _error_json(error: RelayError, request: Request) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    response = build_error_response(error, request_id=request_id)
    return JSONResponse(
        status_code=response.status_code, content=response.body, headers=response.headers
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    config = get_config()

    log_file = Path("logs") / "app.log" if not config.debug else None
    setup_logging(
        log_level=config.log_level, log_file=log_file, app_name=config.app_name
    )

    app = FastAPI(
        title=config.app_name,
        description="Relays images to the Telegram Bot API sendPhoto method",
        version="1.0.0",
        debug=config.debug,
        lifespan=lifespan,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        openapi_url="/openapi.json" if config.debug else None,
    )

    app.state.config = config

    # Add middleware in correct order (outermost last)
    if not config.debug:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=["*"])

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)

    app.include_router(health_router, prefix="/api/v1")
    app.include_router(photos_router)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions (unknown routes and the like)."""
        logger.warning(
            f"HTTP exception | Request ID: {getattr(request.state, 'request_id', None)} | "
            f"Status: {exc.status_code} | Detail: {exc.detail}"
        )
        if exc.status_code == 405:
            error = MethodNotAllowedError(str(exc.detail))
        elif exc.status_code == 404:
            error = NotFoundError(str(exc.detail))
        else:
            error = RelayError(str(exc.detail), status_code=exc.status_code)
        return _error_json(error, request)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.error(
            f"Uncaught exception | Request ID: {getattr(request.state, 'request_id', None)} | "
            f"Error: {str(exc)}",
            exc_info=True,
        )
        return _error_json(InternalError(), request)

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with basic application info."""
        return {
            "name": config.app_name,
            "version": "1.0.0",
            "status": "running",
            "docs": "/docs" if config.debug else None,
            "health": "/api/v1/health/",
            "endpoints": [
                "/api/send-photo",
                "/api/send-photo-multipart",
                "/api/send-photo-binary",
                "/api/send-photo-binary-extended",
            ],
        }

    return app


# Create the FastAPI app instance
app = create_app()


if __name__ == "__main__":
    """
    Run the application using uvicorn when executed directly.
    """
    import uvicorn

    config = get_config()

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"][
        "fmt"
    ] = "%(asctime)s | %(levelname)s | %(message)s"

    uvicorn.run(
        "src.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
        log_config=log_config,
        access_log=False,
    )
