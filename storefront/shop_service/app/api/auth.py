"""Registration, login and the current-user endpoint."""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..dependencies import (
    get_cart_ttl,
    get_guest_session_token,
    get_identity_provider,
    get_session,
    get_session_factory,
    require_claims,
)
from ..errors import AuthenticationError, ConflictError, NotFoundError
from ..merge import merge_guest_cart_safely
from ..models import User
from ..repository import UserRepository
from ..schemas import AuthResponse, LoginRequest, MessageResponse, RegisterRequest, RegisterResponse, UserResponse
from ..security import IdentityProvider, TokenClaims, hash_password, verify_password

_LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _serialize_user(user: User) -> dict[str, object]:
    return {
        "id": user.id,
        "email": user.email,
        "fullName": user.full_name,
        "phone": user.phone,
        "role": user.role,
        "createdAt": user.created_at,
    }


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, session: AsyncSession = Depends(get_session)) -> RegisterResponse:
    repository = UserRepository(session)
    if await repository.get_by_email(payload.email) is not None:
        raise ConflictError("Email already registered", reason="email_taken")
    user = await repository.create(
        email=payload.email,
        password_hash=hash_password(payload.password),
        full_name=payload.full_name,
        phone=payload.phone,
    )
    _LOGGER.info("Registered user %s", user.id)
    return RegisterResponse(user=UserResponse.model_validate(_serialize_user(user)))


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    provider: IdentityProvider = Depends(get_identity_provider),
    guest_token: str | None = Depends(get_guest_session_token),
    cart_ttl: timedelta = Depends(get_cart_ttl),
) -> AuthResponse:
    user = await UserRepository(session).get_by_email(payload.email)
    if user is None or not verify_password(payload.password, user.password_hash):
        raise AuthenticationError("Invalid email or password", reason="invalid_credentials")

    # A failed merge is already logged by the merge boundary; login proceeds regardless.
    await merge_guest_cart_safely(session_factory, session_token=guest_token, user_id=user.id, ttl=cart_ttl)

    return AuthResponse(token=provider.issue_token(user), user=UserResponse.model_validate(_serialize_user(user)))


@router.post("/logout", response_model=MessageResponse)
async def logout() -> MessageResponse:
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def me(
    claims: TokenClaims = Depends(require_claims),
    session: AsyncSession = Depends(get_session),
) -> UserResponse:
    user = await UserRepository(session).get(claims.subject_id)
    if user is None:
        raise NotFoundError("User not found", reason="user_not_found")
    return UserResponse.model_validate(_serialize_user(user))
