import logging
import time
from typing import Any, cast

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from .config import StorefrontSettings
from .tracing import configure_tracing

_ACCESS_LOGGER = logging.getLogger("storefront.access")


def instrument_app(app: FastAPI, settings: StorefrontSettings) -> None:
    """Attach metrics exporters when enabled."""

    if settings.enable_metrics:
        Instrumentator(excluded_handlers=["/metrics", "/health"]).instrument(app).expose(app)

    state = cast(Any, app.state)
    state.settings = settings


def install_access_log(app: FastAPI) -> None:
    @app.middleware("http")
    async def _access_log(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        _ACCESS_LOGGER.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


def build_app(settings: StorefrontSettings, **extra_kwargs: Any) -> FastAPI:
    """Create a FastAPI instance with standard metadata and instrumentation."""

    app = FastAPI(title=settings.app_name, version="0.1.0", **extra_kwargs)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Content-Type", "Authorization", "X-Session-Id"],
        allow_credentials=True,
    )
    install_access_log(app)
    instrument_app(app, settings)
    configure_tracing(app, settings)
    return app
