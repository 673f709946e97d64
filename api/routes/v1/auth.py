"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/registration      -- create account; returns tokens; sets refresh cookie
  GET  /api/v1/auth/activate/{link}   -- confirm email ownership; 200, empty body
  POST /api/v1/auth/login             -- password login; returns tokens; sets refresh cookie
  POST /api/v1/auth/logout            -- revoke the refresh token from the cookie; clears it
  GET  /api/v1/auth/refresh           -- rotate the refresh token from the cookie
  GET  /api/v1/auth/me                -- profile from the Bearer access token

Handlers are thin: AuthService owns every rule. Business-rule violations
raise AuthError subclasses, which api/main.py renders as the standard error
envelope with the error's own status code.

Security:
  The refresh token is set as an httpOnly cookie (JS cannot read it) with
  samesite=lax and secure per SECURE_COOKIES. It is also returned in the body
  for non-browser clients.
  Cache-Control: no-store on every response that carries tokens.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import AuthResponse, CredentialsRequest, LogoutResponse, UserResponse
from auth.dependencies import REFRESH_COOKIE, get_auth_service, get_current_user
from auth.errors import UnauthorizedError
from auth.models import AuthResult, UserProfile
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/registration:    public
# - GET  /api/v1/auth/activate/{link}: public -- the link itself is the credential
# - POST /api/v1/auth/login:           public
# - POST /api/v1/auth/logout:          refresh cookie required
# - GET  /api/v1/auth/refresh:         refresh cookie required
# - GET  /api/v1/auth/me:              requires Bearer access token (get_current_user)
router = APIRouter()


@router.post("/auth/registration", response_model=AuthResponse, status_code=201)
async def registration(
    request: Request,
    response: Response,
    body: CredentialsRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Register a new account and log it in straight away.

    The activation mail is sent in the background; a mail failure never fails
    the registration.
    """
    result = await service.register(body.email, body.password)
    return _issue(request, response, result)


@router.get("/auth/activate/{link}", status_code=200)
async def activate(link: str, service: AuthService = Depends(get_auth_service)) -> Response:
    """Flip isActivated for the owner of the link. Repeat visits are harmless."""
    await service.activate(link)
    return Response(status_code=200)


@router.post("/auth/login", response_model=AuthResponse)
async def login(
    request: Request,
    response: Response,
    body: CredentialsRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Authenticate with email and password.

    Returns the same generic error for an unknown email and a wrong password
    to avoid leaking which emails are registered.
    """
    result = await service.login(body.email, body.password)
    return _issue(request, response, result)


@router.post("/auth/logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> LogoutResponse:
    """Revoke the session bound to the refresh cookie and clear the cookie."""
    refresh_token = request.cookies.get(REFRESH_COOKIE)
    if not refresh_token:
        raise UnauthorizedError()
    session = await service.logout(refresh_token)
    response.delete_cookie(REFRESH_COOKIE, httponly=True, samesite="lax")
    return LogoutResponse.from_session(session)


@router.get("/auth/refresh", response_model=AuthResponse)
async def refresh(
    request: Request,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Exchange the refresh cookie for a new token pair.

    The presented refresh token stops working as soon as this returns.
    """
    result = await service.refresh(request.cookies.get(REFRESH_COOKIE))
    return _issue(request, response, result)


@router.get("/auth/me", response_model=UserResponse)
async def me(current_user: UserProfile = Depends(get_current_user)) -> UserResponse:
    """Return the profile carried by the caller's access token."""
    return UserResponse.from_profile(current_user)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _issue(request: Request, response: Response, result: AuthResult) -> AuthResponse:
    """Attach the refresh cookie and no-store header, then build the body."""
    settings = request.app.state.settings
    response.set_cookie(
        REFRESH_COOKIE,
        value=result.refresh_token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.refresh_token_expire_seconds,
    )
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse.from_result(result)
