"""Entry point for the FastAPI application.

This module constructs the FastAPI app, includes all routers and sets up the
startup lifecycle.  Run it with::

    uvicorn prompt_manager.api.main:app --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from prompt_manager.core.config import settings
from prompt_manager.core.database import init_db
from prompt_manager.core.observability import init_sentry
from prompt_manager.api.error_handlers import validation_exception_handler, generic_exception_handler
from prompt_manager.api.routes.billing import router as billing_router
from prompt_manager.api.routes.membership import router as membership_router
from prompt_manager.api.routes.prompts import router as prompts_router
from prompt_manager.api.routes.stripe_webhooks import router as stripe_webhooks_router

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info("Starting up...")
    if init_sentry("api"):
        logger.info("Sentry SDK initialized (api)")
    await init_db()
    yield
    logger.info("Shutting down...")


def _is_dev() -> bool:
    return (settings.ENVIRONMENT or "development").lower() == "development"


def create_app() -> FastAPI:
    app = FastAPI(
        title=f"{settings.PROJECT_NAME} API",
        version=settings.VERSION,
        lifespan=lifespan,
    )

    allow_origins = ["*"] if _is_dev() else list(settings.BACKEND_CORS_ORIGINS or [])
    if "*" not in allow_origins and settings.FRONTEND_BASE_URL not in allow_origins:
        allow_origins.append(settings.FRONTEND_BASE_URL)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(stripe_webhooks_router)
    app.include_router(membership_router)
    app.include_router(prompts_router)
    app.include_router(billing_router)

    @app.api_route("/health", methods=["GET", "HEAD"])
    async def health_check():
        """Health check endpoint (supports GET & HEAD)."""
        return {"status": "healthy", "environment": settings.ENVIRONMENT, "version": settings.VERSION}

    return app


app = create_app()
