"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Access tokens travel in the Authorization: Bearer <token> header. Refresh
tokens never authenticate a request; they travel in the httpOnly
refreshToken cookie and are only read by /auth/refresh and /auth/logout.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: auth/dependencies.py may import from fastapi because it is part
of the FastAPI dependency injection system. It does not import from api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import UserProfile
from auth.service import AuthService

REFRESH_COOKIE = "refreshToken"


def get_auth_service(request: Request) -> AuthService:
    """The AuthService instance built in the application lifespan."""
    return request.app.state.auth_service


def bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def try_get_current_user(request: Request) -> UserProfile | None:
    """Authenticate the request from its Bearer access token.

    Returns the profile embedded in the token, or None on any failure. Never
    raises. The profile is as of token issue time (at most one access TTL old).
    """
    claims = get_auth_service(request).validate_access_token(bearer_token(request))
    if claims is None:
        return None
    return UserProfile(
        id=claims["id"],
        email=claims.get("email", ""),
        is_activated=bool(claims.get("isActivated", False)),
        roles=tuple(claims.get("roles") or ()),
    )


def get_current_user(request: Request) -> UserProfile:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: UserProfile = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Пользователь не авторизован"},
        )
    return user
