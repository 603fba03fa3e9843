"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and the
limiter maintenance task) so tests can build isolated instances.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from market_guard.api.routes import admin_router, health_router, rate_limit_router
from market_guard.core.config import settings
from market_guard.core.exception_handlers import setup_exception_handlers
from market_guard.core.logging import configure_logging
from market_guard.core.middleware import request_id_middleware
from market_guard.core.openapi import apply_openapi_customizations
from market_guard.core.rate_limit import get_rate_limiter, run_periodic_sweep

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the periodic limiter sweep when an interval is configured."""
    interval = settings.rate_limit.sweep_interval_seconds
    task: asyncio.Task | None = None
    if interval > 0:
        task = asyncio.create_task(run_periodic_sweep(get_rate_limiter(), interval))
        logger.info("rate_limit.sweep_task_started", extra={"interval_s": interval})
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Market Guard API",
        description=(
            "Request throttling and role checks for the prediction-market API "
            "handlers: sliding-window rate limits per caller and policy, with "
            "admin maintenance endpoints."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(rate_limit_router, prefix="/v1")
    app.include_router(admin_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
