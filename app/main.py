"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.api.dependencies import WriteRateLimitExceeded
from app.api.v1.routers import bloom_status
from app.config import Settings, settings
from app.infrastructure.bloom_status_store import BloomStatusStore
from app.infrastructure.database import Database
from app.middleware.error_handler import (
    ErrorHandlerMiddleware,
    rate_limit_exceeded_handler,
    validation_exception_handler,
)
from app.services.domain.rate_limiter import SlidingWindowRateLimiter

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Opens the database and builds the store on startup, disposes the
    engine on shutdown.
    """
    app_settings: Settings = app.state.settings

    # Startup
    logger.info(f"Starting {app_settings.app_name} v{app_settings.app_version}")
    logger.info(f"Log level: {app_settings.log_level}")
    logger.info(f"Rate limit: {app_settings.rate_limit_requests} writes per "
                f"{app_settings.rate_limit_window_seconds}s")

    database = Database(app_settings.database_url)
    if app_settings.database_auto_create:
        await database.init_db()
    app.state.database = database
    app.state.bloom_status_store = BloomStatusStore(
        database,
        stats_timeout_ms=app_settings.stats_statement_timeout_ms,
    )

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await database.close()
    logger.info("Shutdown complete")


def create_app(
    app_settings: Optional[Settings] = None,
    rate_limiter: Optional[SlidingWindowRateLimiter] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        app_settings: Settings to run with (defaults to the global settings)
        rate_limiter: Write rate limiter; one is built from settings if omitted

    Returns:
        Configured FastAPI application
    """
    app_settings = app_settings or settings

    application = FastAPI(
        title=app_settings.app_name,
        version=app_settings.app_version,
        description="""
        Crowd-sourced cherry blossom bloom tracker API

        Stores anonymous per-street bloom reports and serves the current
        status of streets and neighborhoods.

        ## Features

        - **Street status**: The most recent report for a street
        - **Neighborhood statistics**: Streets counted by current status
        - **Recent reports**: Newest reports across the city
        - **Rate Limiting**: Writes are limited per client address
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    application.state.settings = app_settings
    if rate_limiter is None:
        rate_limiter = SlidingWindowRateLimiter(
            max_requests=app_settings.rate_limit_requests,
            window_seconds=app_settings.rate_limit_window_seconds,
        )
    application.state.rate_limiter = rate_limiter

    application.add_exception_handler(WriteRateLimitExceeded, rate_limit_exceeded_handler)
    application.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Add global error handling middleware
    application.add_middleware(ErrorHandlerMiddleware)

    # CORS wraps everything, error responses included
    application.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=86400,
    )

    # Include routers
    application.include_router(bloom_status.router)

    @application.get("/", tags=["health"])
    async def root():
        """
        Root endpoint for health check.

        Returns:
            Status message
        """
        return {
            "status": "healthy",
            "service": app_settings.app_name,
            "version": app_settings.app_version,
        }

    @application.get("/health", tags=["health"])
    async def health_check():
        """
        Health check endpoint.

        Returns:
            Health status
        """
        return {
            "status": "healthy",
            "service": app_settings.app_name,
        }

    @application.get("/health/db", tags=["health"])
    async def database_health(request: Request):
        """
        Database connectivity check.

        Returns:
            Health, latency and error of a trivial query
        """
        return await request.app.state.database.health_check()

    return application


# Create FastAPI application
app = create_app()
