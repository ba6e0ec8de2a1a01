"""Shared plumbing for the storefront API."""

from .config import DEFAULT_APP_NAME, DEFAULT_DATABASE_URL, StorefrontSettings
from .database import Database, lifespan_session, resolve_database_url
from .instrumentation import build_app, instrument_app
from .logging import configure_logging
from .tracing import configure_tracing, get_tracer

__all__ = [
    "StorefrontSettings",
    "DEFAULT_APP_NAME",
    "DEFAULT_DATABASE_URL",
    "Database",
    "lifespan_session",
    "resolve_database_url",
    "build_app",
    "instrument_app",
    "configure_logging",
    "configure_tracing",
    "get_tracer",
]
