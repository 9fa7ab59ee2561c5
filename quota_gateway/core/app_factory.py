"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from quota_gateway.api.dependencies import get_counter_store, reset_services
from quota_gateway.api.routes import completions_router, health_router, quota_router
from quota_gateway.core.config import settings
from quota_gateway.core.exception_handlers import setup_exception_handlers
from quota_gateway.core.logging import configure_logging
from quota_gateway.core.middleware import request_id_middleware
from quota_gateway.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "app.startup",
        extra={
            "app_env": settings.app_env,
            "store_backend": settings.store.backend,
            "llm_configured": bool(settings.llm.api_key),
            "primary_model": settings.models.primary,
            "degraded_model": settings.models.degraded,
        },
    )
    try:
        yield
    finally:
        await get_counter_store().close()
        reset_services()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Quota Gateway",
        description=(
            "Gateway in front of a metered completion API. Enforces global and "
            "per-identity request/token quotas, charges actual token usage after "
            "each call and switches to a cheaper model tier under load."
        ),
        version="0.1.0",
        lifespan=lifespan,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(completions_router, prefix="/v1")
    app.include_router(quota_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
