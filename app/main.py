"""
FastAPI application entrypoint for the OAuth credential service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import get_credential_repository

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the durable credential store before serving requests."""
    settings = get_settings()
    get_credential_repository()
    logger.info(
        "Credential service ready (env=%s, backend=%s)",
        settings.environment,
        settings.storage.backend,
    )
    yield


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="OAuth Credential Service",
        version="0.1.0",
        description="Issues CSRF-safe OAuth redirects and maintains provider credentials.",
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
