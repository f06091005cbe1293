from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction (logging, counter store, throttle engine,
middleware, handlers, routers) so tests can build apps with their own
settings and a fake counter store.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from request_throttling.adapters.counter_store import AbstractCounterStore, create_counter_store
from request_throttling.api.routes import health_router
from request_throttling.core.config import Settings, settings as default_settings
from request_throttling.core.exception_handlers import setup_exception_handlers
from request_throttling.core.logging import configure_logging
from request_throttling.core.middleware import request_id_middleware, throttle_middleware
from request_throttling.services.throttle_engine import KEY_FUNCS, ThrottleConfig, ThrottleEngine

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    counter_store: AbstractCounterStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Throttling is wired once here: when either limit is <= 0 no counter store
    is created and the throttle middleware is not registered at all.

    Args:
        settings: Settings to build from; defaults to the global settings.
        counter_store: Pre-built store to use instead of the configured one.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    throttle_config = ThrottleConfig.from_settings(cfg.throttle)
    engine: ThrottleEngine | None = None

    if throttle_config.is_enabled:
        store = counter_store or create_counter_store(cfg.store)
        engine = ThrottleEngine(
            throttle_config,
            store,
            key_func=KEY_FUNCS[cfg.throttle.key_source],
        )
        logger.info(
            "throttle.enabled",
            extra={
                "max_requests": throttle_config.max_requests,
                "period_seconds": throttle_config.period_seconds,
                "key_source": cfg.throttle.key_source,
                "store_backend": type(store).__name__,
                "fail_open": cfg.throttle.fail_open,
            },
        )
    else:
        store = None
        logger.info(
            "throttle.disabled",
            extra={
                "max_requests": throttle_config.max_requests,
                "period_seconds": throttle_config.period_seconds,
            },
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if store is not None:
            await store.close()

    app = FastAPI(
        title="Request Throttling",
        description=(
            "Fixed-window request throttling in front of an application. "
            "Clients exceeding the configured request budget receive 429."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.throttle_config = throttle_config
    app.state.throttle_engine = engine
    app.state.throttle_fail_open = cfg.throttle.fail_open
    app.state.throttle_key_source = cfg.throttle.key_source
    app.state.counter_store = store

    # Middleware (last registered runs first)
    if engine is not None:
        app.middleware("http")(throttle_middleware)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)

    return app
