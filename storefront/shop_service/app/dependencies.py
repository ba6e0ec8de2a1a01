"""Dependency helpers for the storefront API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from datetime import timedelta

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.common import StorefrontSettings, lifespan_session

from .errors import AuthenticationError, PermissionDeniedError
from .identity import CartIdentity, SessionIdentity, UserIdentity
from .security import IdentityProvider, TokenClaims
from .storage import BlobStorage

_LOGGER = logging.getLogger(__name__)
_bearer = HTTPBearer(auto_error=False)


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an AsyncSession for the current request."""

    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with lifespan_session(session_factory) as session:
        yield session


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory


def get_settings(request: Request) -> StorefrontSettings:
    return request.app.state.settings


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def get_blob_storage(request: Request) -> BlobStorage:
    return request.app.state.storage


def get_cart_ttl(settings: StorefrontSettings = Depends(get_settings)) -> timedelta:
    return timedelta(days=settings.cart_ttl_days)


def get_optional_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> TokenClaims | None:
    """Claims from a valid bearer token, or ``None`` when absent or invalid."""

    if credentials is None:
        return None
    claims = provider.verify(credentials.credentials)
    if claims is None:
        _LOGGER.debug("Ignoring invalid bearer token")
    return claims


def require_claims(claims: TokenClaims | None = Depends(get_optional_claims)) -> TokenClaims:
    if claims is None:
        raise AuthenticationError("Authentication required", reason="unauthenticated")
    return claims


def require_admin(claims: TokenClaims = Depends(require_claims)) -> TokenClaims:
    if claims.role != "admin":
        raise PermissionDeniedError("Admin access required", reason="admin_required")
    return claims


def get_cart_identity(
    request: Request,
    response: Response,
    claims: TokenClaims | None = Depends(get_optional_claims),
    settings: StorefrontSettings = Depends(get_settings),
) -> CartIdentity:
    """Authenticated user first, then the session cookie, else a new session.

    A freshly generated session token is sent back as an http-only cookie.
    """

    if claims is not None:
        return UserIdentity(claims.subject_id)

    token = request.cookies.get(settings.session_cookie_name, "").strip()
    if token:
        return SessionIdentity(token)

    identity = SessionIdentity.generate()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=identity.token,
        max_age=settings.cart_ttl_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="strict",
    )
    return identity


def get_guest_session_token(request: Request, settings: StorefrontSettings = Depends(get_settings)) -> str | None:
    """Guest session token supplied at login: header, then query, then cookie."""

    for candidate in (
        request.headers.get("x-session-id"),
        request.query_params.get("session_id"),
        request.cookies.get(settings.session_cookie_name),
    ):
        if candidate and candidate.strip():
            return candidate.strip()
    return None
