"""
FastAPI application factory.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vitalwatch import __version__
from vitalwatch.api.dependencies import (
    cleanup_dependencies,
    drain_pipeline,
    start_broadcaster,
    stop_broadcaster,
)
from vitalwatch.api.routes import alerts, health, readings, ws
from vitalwatch.config.settings import get_settings
from vitalwatch.errors import (
    AccessDeniedError,
    AlertNotFoundError,
    ReadingNotFoundError,
    ReadingValidationError,
)
from vitalwatch.observability.logging import bind_request, clear_context

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("vitalwatch API starting up")

    settings = get_settings()
    if settings.ws_enabled:
        try:
            await start_broadcaster()
            logger.info("WebSocket room broadcaster started")
        except Exception as e:
            logger.warning("Failed to start WebSocket broadcaster", error=str(e))

    yield

    logger.info("vitalwatch API shutting down")
    await drain_pipeline()
    await stop_broadcaster()
    await cleanup_dependencies()


def _error(status_code: int, detail: str, error_type: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "error_type": error_type},
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    openapi_tags = [
        {"name": "health", "description": "Service health checks"},
        {"name": "metrics", "description": "Health metric readings"},
        {"name": "alerts", "description": "Alert management"},
        {"name": "websocket", "description": "Real-time alert channel"},
    ]

    app = FastAPI(
        title="vitalwatch API",
        description="""
Health-metric alerting for a telehealth platform.

Readings are persisted, checked against normal ranges, and abnormal
values raise alerts that are pushed to the patient in real time and,
for high and critical alerts, emailed.

## Authentication

Requires `X-API-KEY` header for all requests except `/health`. The
upstream gateway forwards the caller as `X-User-Id` and `X-User-Role`.
        """,
        version=__version__,
        debug=settings.debug,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )

    # Add CORS middleware (origins from CORS_ORIGINS env var, comma-separated)
    cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Request logging and correlation ID
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )
        bind_request(request_id, user_id=request.headers.get("X-User-Id"))

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time

            response.headers["X-Request-ID"] = request_id

            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            return response
        finally:
            clear_context()

    # Domain errors
    @app.exception_handler(ReadingValidationError)
    async def reading_validation_handler(request: Request, exc: ReadingValidationError):
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc), "validation")

    @app.exception_handler(AlertNotFoundError)
    async def alert_not_found_handler(request: Request, exc: AlertNotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, "Alert not found", "not_found")

    @app.exception_handler(ReadingNotFoundError)
    async def reading_not_found_handler(request: Request, exc: ReadingNotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, "Metric not found", "not_found")

    @app.exception_handler(AccessDeniedError)
    async def access_denied_handler(request: Request, exc: AccessDeniedError):
        return _error(status.HTTP_403_FORBIDDEN, str(exc), "forbidden")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "internal")

    app.include_router(health.router, tags=["health"])
    app.include_router(readings.router, tags=["metrics"])
    app.include_router(alerts.router, tags=["alerts"])
    app.include_router(ws.router, tags=["websocket"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "vitalwatch API",
            "version": __version__,
            "docs": "/docs",
        }

    return app
