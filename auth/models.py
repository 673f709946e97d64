"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the
AuthService do the work; these only own the shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Role:
    """A named capability ("USER", "ADMIN"). Seed data, never created by AuthService."""

    name: str
    id: int | None = None


@dataclass
class User:
    """A registered identity.

    is_activated flips false -> true once, when the emailed activation link is
    followed. It is informational: unactivated users can still log in.

    roles holds role names in assignment order (user_roles.id ascending).
    """

    email: str
    hashed_password: str
    activation_link: str
    id: int | None = None
    is_activated: bool = False
    roles: list[str] = field(default_factory=list)
    created_at: str | None = None


@dataclass
class RefreshSession:
    """The single refresh token currently valid for a user.

    At most one row per user_id. Issuing a new token overwrites the row, so a
    login on a second device invalidates the first device's refresh token.
    """

    user_id: int
    refresh_token: str
    id: int | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class UserProfile:
    """Public view of a User, embedded in tokens and returned to clients."""

    id: int
    email: str
    is_activated: bool
    roles: tuple[str, ...] = ()

    @classmethod
    def from_user(cls, user: User) -> UserProfile:
        return cls(id=user.id, email=user.email, is_activated=user.is_activated, roles=tuple(user.roles))

    def to_claims(self) -> dict:
        """Token payload. Key names follow the JSON contract (camelCase)."""
        return {
            "id": self.id,
            "email": self.email,
            "isActivated": self.is_activated,
            "roles": list(self.roles),
        }


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthResult:
    """What register, login and refresh hand back to the caller layer."""

    tokens: TokenPair
    user: UserProfile

    @property
    def access_token(self) -> str:
        return self.tokens.access_token

    @property
    def refresh_token(self) -> str:
        return self.tokens.refresh_token
