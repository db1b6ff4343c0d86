"""Application factory for the relay.

Centralizes app construction (metadata, middleware, handlers, routers,
lifespan) so tests can build fresh instances.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api.routes import health_router, relay_router
from app.core.config import settings
from app.core.dependencies import close_dependencies
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("relay.startup", extra={"app_env": settings.app_env})
    try:
        yield
    finally:
        await close_dependencies()
        logger.info("relay.shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Relay Protector",
        description=(
            "Authenticated message relay. Enforces per-identity short and long "
            "window rate limits and forwards messages to one of several webhook "
            "endpoints, failing over between them on errors."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(relay_router, prefix="/api")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
