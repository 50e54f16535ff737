"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from task_service.app.exception_handlers import configure_exception_handlers
from task_service.app.lifespan import lifespan
from task_service.app.middleware import configure_middleware
from task_service.app.router import setup_routers
from task_service.core.settings import (
    get_app_settings,
    get_rate_limit_settings,
    get_redis_settings,
)
from task_service.infra.cache import CounterStore


def create_app(*, store: CounterStore | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        store: Counter store to share between the rate limiter and the
            services. Built from Redis settings when omitted; the lifespan
            connects it.

    Returns:
        Configured FastAPI application instance.
    """
    app_settings = get_app_settings()

    app = FastAPI(
        title=app_settings.title,
        version=app_settings.version,
        docs_url=app_settings.docs_url,
        openapi_url=app_settings.openapi_url,
        debug=app_settings.debug,
        lifespan=lifespan,
    )

    store = store or CounterStore(get_redis_settings())
    app.state.counter_store = store

    # Configure exception handlers (must be before middleware)
    configure_exception_handlers(app)

    configure_middleware(app, store, get_rate_limit_settings())

    setup_routers(app, app_settings)

    return app


# Application instance for uvicorn
app = create_app()
