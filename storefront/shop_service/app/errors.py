"""Domain errors and their HTTP rendering."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

_LOGGER = logging.getLogger(__name__)


class StorefrontError(Exception):
    """Base class for errors that map onto a structured client response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_reason: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason
        self.details = details or {}


class NotFoundError(StorefrontError):
    status_code = status.HTTP_404_NOT_FOUND
    default_reason = "not_found"


class BadRequestError(StorefrontError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_reason = "bad_request"


class InsufficientStockError(BadRequestError):
    default_reason = "insufficient_stock"

    def __init__(self, *, product_id: int, product_name: str, available: int, requested: int) -> None:
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}, Requested: {requested}",
            details={
                "productId": product_id,
                "productName": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested


class ConflictError(StorefrontError):
    status_code = status.HTTP_409_CONFLICT
    default_reason = "conflict"


class AuthenticationError(StorefrontError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_reason = "unauthenticated"


class PermissionDeniedError(StorefrontError):
    status_code = status.HTTP_403_FORBIDDEN
    default_reason = "forbidden"


def _render(status_code: int, message: str, reason: str, details: dict[str, Any]) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"detail": message, "reason": reason, "details": details}),
        headers=headers,
    )


async def _handle_storefront_error(_request: Request, exc: StorefrontError) -> JSONResponse:
    return _render(exc.status_code, exc.message, exc.reason, exc.details)


async def _handle_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", "invalid value"),
        }
        for error in exc.errors()
    ]
    return _render(status.HTTP_400_BAD_REQUEST, "Validation failed", "validation_failed", {"fields": fields})


async def _handle_integrity_error(_request: Request, exc: IntegrityError) -> JSONResponse:
    _LOGGER.warning("Integrity violation: %s", exc.orig)
    return _render(status.HTTP_409_CONFLICT, "Resource conflicts with existing data", "conflict", {})


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    _LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _render(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "internal_error", {})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, _handle_storefront_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _handle_integrity_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _handle_unexpected)
