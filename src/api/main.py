"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures exception handlers and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from psycopg_pool import ConnectionPool

from src.adapters.repository.memory import InMemoryEmailStore
from src.adapters.repository.postgres import PostgresEmailStore, run_migrations
from src.api.v1 import router as v1_router
from src.config.settings import get_settings
from src.domain.context import RequestContext
from src.domain.exceptions import ErrorKind, RegistryError, StorageError

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Email Ownership Registry API v1 - Add, verify and remove account email addresses",
    },
    {
        "name": "admin",
        "description": "Administrative provisioning and account lookup",
    },
]

_STATUS_BY_KIND = {
    ErrorKind.ALREADY_CLAIMED: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_VERIFIED: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_DETAIL_BY_KIND = {
    ErrorKind.ALREADY_CLAIMED: "Email address already claimed",
    ErrorKind.ALREADY_VERIFIED: "Email address already verified",
    ErrorKind.NOT_FOUND: "Email address not found",
    ErrorKind.INTERNAL: "Internal server error",
}


async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    """Translate a RegistryError kind into an HTTP response without leaking context."""
    if exc.kind == ErrorKind.INTERNAL:
        logger.error("Registry failure on %s %s: %s", request.method, request.url.path, exc)
    else:
        logger.info("Registry rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=_STATUS_BY_KIND[exc.kind],
        content={"detail": _DETAIL_BY_KIND[exc.kind], "code": exc.kind.value},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Opens the configured store on startup (pool + migrations for postgres)
    - Closes the connection pool on shutdown
    """
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    logger.info("Starting application...")

    pool = None
    if settings.storage_backend == "memory":
        logger.info("Using in-memory store")
        app.state.store = InMemoryEmailStore()
    else:
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
            open=True,
        )

        logger.info("Running database migrations...")
        try:
            run_migrations(pool)
        except Exception:
            pool.close()
            raise

        app.state.pool = pool
        app.state.store = PostgresEmailStore(pool)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="email-registry",
    description="Email Ownership Registry API - Claim and verify account email addresses",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

app.add_exception_handler(RegistryError, registry_error_handler)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with store validation.

    Returns 200 OK if application and store are healthy.
    A store failure surfaces as a 500 via the registry error handler.
    """
    settings = get_settings()
    ctx = RequestContext.with_timeout(settings.request_timeout_seconds)
    try:
        request.app.state.store.ping(ctx)
    except StorageError as err:
        raise RegistryError(ErrorKind.INTERNAL, str(err), ctx.as_dict()) from err

    return {"status": "healthy"}
