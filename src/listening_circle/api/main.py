"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures exception handlers, and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from listening_circle.adapters.repository import (
    InMemoryUserRepository,
    InMemoryVerificationCodeRepository,
    PostgresUserRepository,
    PostgresVerificationCodeRepository,
    run_migrations,
)
from listening_circle.api.dependencies import build_auth_service, build_email_sender, build_mailing_list
from listening_circle.api.errors import register_error_handlers
from listening_circle.api.v1 import router as v1_router
from listening_circle.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Listening Circle auth API v1 - Email codes, sessions and profile completion",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates database connection pool and runs migrations (postgres backend)
    - Builds provider clients once and wires the AuthService
    - Closes the pool and HTTP clients on shutdown
    """
    settings: Settings = app.state.settings
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info("Starting application (environment=%s)...", settings.environment)

    pool = None
    if settings.repository_backend == "postgres":
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
        logger.info("Running database migrations...")
        run_migrations(pool)
        code_repository = PostgresVerificationCodeRepository(pool)
        user_repository = PostgresUserRepository(pool)
    else:
        logger.warning("Using in-memory repositories; data is lost on restart")
        code_repository = InMemoryVerificationCodeRepository()
        user_repository = InMemoryUserRepository()

    email_sender = build_email_sender(settings)
    if email_sender is None:
        logger.warning("Email delivery is not configured; sign-in will be unavailable")
    mailing_list = build_mailing_list(settings)

    app.state.pool = pool
    app.state.auth_service = build_auth_service(
        settings, code_repository, user_repository, email_sender, mailing_list
    )

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    for client in (email_sender, mailing_list):
        close = getattr(client, "close", None)
        if close is not None:
            close()
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application; settings are resolved once and kept on app.state."""
    app = FastAPI(
        title="listening-circle-auth",
        description="Passwordless email-code authentication for the Listening Circle",
        version="0.1.0",
        openapi_tags=tags_metadata,
        lifespan=lifespan,
    )
    app.state.settings = settings or get_settings()

    register_error_handlers(app)

    # Include v1 API routes
    app.include_router(v1_router, prefix="/v1")

    @app.get("/health")
    def health_check(request: Request) -> dict[str, str]:
        """
        Health check endpoint with database validation.

        Returns 200 OK if application and database are healthy.
        Raises exception if database connection fails.
        """
        pool = request.app.state.pool
        if pool is not None:
            with pool.connection() as conn:
                conn.execute("SELECT 1")

        return {"status": "healthy"}

    return app


app = create_app()
