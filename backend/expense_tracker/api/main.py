"""Entry point for the FastAPI application.

This module constructs the FastAPI app, includes all routers and
sets up startup and shutdown events. When run with uvicorn it
initialises the database, prepares the upload directories and loads
configuration from ``expense_tracker.core.config``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from expense_tracker.api.dependencies import get_upload_service
from expense_tracker.api.error_handlers import (
    generic_exception_handler,
    http_exception_handler,
    ingestion_exception_handler,
    validation_exception_handler,
)
from expense_tracker.api.routes.receipts import router as receipts_router
from expense_tracker.core.config import settings
from expense_tracker.core.database import get_db_debug_info, init_db
from expense_tracker.core.errors import IngestionError
from expense_tracker.core.observability import init_sentry, sentry_enabled
from expense_tracker.services.cache import get_redis, set_redis_client

# Configure logging
logging.basicConfig(
    level=getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    # Startup
    logger.info("Starting up...")
    if init_sentry("api"):
        logger.info("Sentry SDK initialized (api)")
    await init_db()
    get_upload_service().ensure_directories()
    yield
    # Shutdown
    logger.info("Shutting down...")
    client = await get_redis()
    if client is not None:
        await client.aclose()
        set_redis_client(None)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        lifespan=lifespan,
    )

    # Enrich Sentry scope with lightweight request + user info
    @app.middleware("http")
    async def sentry_context_middleware(request: Request, call_next):  # type: ignore
        if sentry_enabled():
            sentry_sdk.set_tag("path", request.url.path)
            sentry_sdk.set_tag("method", request.method)
            uid = request.query_params.get("userId") or request.headers.get("x-user-id")
            if uid:
                sentry_sdk.set_user({"id": uid})
        return await call_next(request)

    # In development allow all origins for simplest DX
    env_is_dev = (settings.ENVIRONMENT or "development").lower() == "development"
    allow_origins = ["*"] if env_is_dev else list(dict.fromkeys(settings.BACKEND_CORS_ORIGINS or []))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=not env_is_dev,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register custom exception handlers
    app.add_exception_handler(IngestionError, ingestion_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Include routers
    app.include_router(receipts_router, prefix=settings.API_V1_STR)

    @app.api_route("/health", methods=["GET", "HEAD"])
    async def health_check():
        """Health check endpoint (supports GET & HEAD)."""
        return {
            "success": True,
            "status": "healthy",
            "service": settings.PROJECT_NAME,
            "environment": settings.ENVIRONMENT,
            "version": settings.VERSION,
            "availableRoutes": {
                "receipts": f"{settings.API_V1_STR}/receipts",
            },
        }

    @app.get("/debug/db")
    async def db_debug():
        """Return non-sensitive DB diagnostics (development only)."""
        if not env_is_dev:
            return {"success": False, "message": "disabled in non-development env"}
        return get_db_debug_info()

    return app


app = create_app()
