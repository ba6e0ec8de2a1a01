"""Cart identities: either an authenticated user or an anonymous session."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class UserIdentity:
    user_id: int

    def __post_init__(self) -> None:
        if self.user_id <= 0:
            raise ValueError("user_id must be positive")


@dataclass(frozen=True, slots=True)
class SessionIdentity:
    token: str

    def __post_init__(self) -> None:
        if not self.token or not self.token.strip():
            raise ValueError("session token must be non-empty")

    @classmethod
    def generate(cls) -> SessionIdentity:
        return cls(str(uuid.uuid4()))


CartIdentity = Union[UserIdentity, SessionIdentity]
