from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from storefront.common import (
    DEFAULT_APP_NAME,
    DEFAULT_DATABASE_URL,
    Database,
    StorefrontSettings,
    build_app,
    configure_logging,
    resolve_database_url,
)

from .api.auth import router as auth_router
from .api.cart import router as cart_router
from .api.categories import router as categories_router
from .api.checkout import router as checkout_router
from .api.health import router as health_router
from .api.orders import router as orders_router
from .api.products import router as products_router
from .checkout import OrderNumberFactory, generate_order_number
from .errors import register_error_handlers
from .models import Base
from .security import IdentityProvider
from .storage import LocalBlobStorage

SERVICE_NAME = "Storefront API"


def create_app(
    settings: StorefrontSettings | None = None,
    *,
    order_number_factory: OrderNumberFactory = generate_order_number,
) -> FastAPI:
    """Create the storefront FastAPI application and its collaborators."""

    resolved_settings = settings or StorefrontSettings()
    if resolved_settings.app_name == DEFAULT_APP_NAME:
        resolved_settings = resolved_settings.model_copy(update={"app_name": SERVICE_NAME})
    configure_logging(resolved_settings)
    database = Database(
        resolve_database_url(resolved_settings, DEFAULT_DATABASE_URL),
        echo=resolved_settings.database_echo,
    )
    storage = LocalBlobStorage(Path(resolved_settings.blob_storage_dir), resolved_settings.blob_base_url)
    identity_provider = IdentityProvider(resolved_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if resolved_settings.auto_create_schema:
            await database.create_schema(Base)
        app.state.database = database
        app.state.session_factory = database.session_factory
        app.state.storage = storage
        app.state.identity_provider = identity_provider
        app.state.order_number_factory = order_number_factory
        try:
            yield
        finally:
            await storage.close()
            await database.dispose()

    app = build_app(resolved_settings, lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(categories_router)
    app.include_router(products_router)
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(orders_router)
    return app


app = create_app()
