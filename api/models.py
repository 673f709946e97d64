"""
API request and response models for the tokenward REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

JSON field names are camelCase (accessToken, isActivated, ...). Models accept
either spelling on input (populate_by_name) and FastAPI serializes responses
by alias.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import AuthResult, RefreshSession, UserProfile

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: one "@", no whitespace, a dot in the domain. Deliverability
# is proven by the activation mail, not by the regex.
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_MIN_LENGTH = 5
# bcrypt only looks at the first 72 bytes.
PASSWORD_MAX_LENGTH = 72


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Request body for POST /api/v1/auth/registration and POST /api/v1/auth/login.

    Validation messages are user-facing and localized. The validators run in
    mode="before" so a missing or non-string value still gets the friendly
    message instead of a generic type error.
    """

    email: str = Field(max_length=255)
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, value: object) -> str:
        if not isinstance(value, str) or not EMAIL_PATTERN.match(value.strip()):
            raise ValueError("Введите корректный Email")
        return value.strip()

    @field_validator("password", mode="before")
    @classmethod
    def validate_password(cls, value: object) -> str:
        if not isinstance(value, str) or len(value) < PASSWORD_MIN_LENGTH:
            raise ValueError(f"Минимальное количество символов для пароля {PASSWORD_MIN_LENGTH}")
        if len(value.encode("utf-8")) > PASSWORD_MAX_LENGTH:
            raise ValueError(f"Максимальная длина пароля {PASSWORD_MAX_LENGTH} байта")
        return value


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(_CamelModel):
    """Public user profile: {id, email, isActivated, roles}."""

    id: int
    email: str
    is_activated: bool
    roles: list[str] = Field(default_factory=list)

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserResponse":
        return cls(id=profile.id, email=profile.email, is_activated=profile.is_activated, roles=list(profile.roles))


class AuthResponse(_CamelModel):
    """Response for registration, login and refresh."""

    access_token: str
    refresh_token: str
    user: UserResponse

    @classmethod
    def from_result(cls, result: AuthResult) -> "AuthResponse":
        return cls(
            access_token=result.access_token,
            refresh_token=result.refresh_token,
            user=UserResponse.from_profile(result.user),
        )


class LogoutResponse(_CamelModel):
    """The session record that logout deleted."""

    user_id: int
    refresh_token: str

    @classmethod
    def from_session(cls, session: RefreshSession) -> "LogoutResponse":
        return cls(user_id=session.user_id, refresh_token=session.refresh_token)


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
