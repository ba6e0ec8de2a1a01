"""Password hashing and bearer-token identity provider."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from storefront.common import StorefrontSettings

from .models import User


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Verified contents of a bearer token."""

    subject_id: int
    email: str
    role: str


class IdentityProvider:
    """Issues and verifies HS-signed JWTs for storefront users."""

    def __init__(self, settings: StorefrontSettings) -> None:
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm
        self._lifetime = timedelta(seconds=settings.jwt_expire_seconds)

    def issue_token(self, user: User) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role,
            "iat": now,
            "exp": now + self._lifetime,
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims | None:
        """Return the token's claims, or ``None`` when it is invalid or expired."""

        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError:
            return None
        try:
            subject_id = int(payload["sub"])
        except (KeyError, TypeError, ValueError):
            return None
        if subject_id <= 0:
            return None
        return TokenClaims(
            subject_id=subject_id,
            email=str(payload.get("email", "")),
            role=str(payload.get("role", "customer")),
        )
