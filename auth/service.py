"""
auth/service.py -- Registration, activation, login, logout and token refresh.

AuthService composes the credential store (UserStore), the session store
(SessionStore), the token signer (TokenService) and the activation notifier.
It holds no per-request state: everything a flow needs is read from the
stores, so any number of requests can run concurrently on one instance.

Token lifecycle:
  - register, login and refresh each mint a fresh access/refresh pair and
    overwrite the user's single session row with the new refresh token.
  - refresh only accepts a token that BOTH verifies (signature + expiry) AND
    is the token currently stored for some user. A validly signed token that
    was rotated away or logged out is rejected; a stored token past its
    expiry is rejected.
  - logout deletes the session row, revoking the refresh token immediately.

Refreshed tokens carry the same claims as login tokens, roles included, and
the user is re-read from the store so profile changes since the previous
token was issued are reflected.

Password work (bcrypt) runs in a worker thread so a login does not stall the
event loop for other requests. Store calls are synchronous SQLAlchemy and run
directly on the event loop; they are short indexed queries and are not
offloaded.

Layer rule: no imports from api/. Settings are passed in, not read here.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

from sqlalchemy.exc import IntegrityError

from auth.errors import (
    ConflictError,
    InvalidActivationLinkError,
    InvalidCredentialsError,
    RoleNotSeededError,
    UnauthorizedError,
)
from auth.models import AuthResult, RefreshSession, User, UserProfile
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import (
    ACCESS,
    REFRESH,
    TokenService,
    dummy_hash,
    generate_activation_link,
    hash_password,
    verify_password,
)

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("tokenward.auth")


class ActivationNotifier(Protocol):
    """Schedules activation mails without blocking the caller; drain() runs on shutdown."""

    def notify_activation(self, to_email: str, link: str) -> object: ...

    async def drain(self) -> None: ...


class AuthService:
    """Auth orchestrator. Construct once at startup and share across requests."""

    def __init__(
        self,
        settings: Settings,
        users: UserStore,
        sessions: SessionStore,
        tokens: TokenService,
        notifier: ActivationNotifier,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.tokens = tokens
        self.notifier = notifier
        self.hash_rounds = settings.password_hash_rounds
        self.default_role = settings.default_role
        dummy_hash(self.hash_rounds)

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    async def register(self, email: str, password: str) -> AuthResult:
        """Create an account, email its activation link, and log it in.

        The new user is not activated yet but still receives valid tokens.
        """
        if self.users.get_by_email(email) is not None:
            raise ConflictError()

        role = self.users.get_role_by_name(self.default_role)
        if role is None:
            raise RoleNotSeededError(
                f"Default role {self.default_role!r} is missing. Run `python main.py seed-roles` first."
            )

        hashed = await asyncio.to_thread(hash_password, password, self.hash_rounds)
        activation_link = generate_activation_link()
        try:
            user_id = self.users.create_user(
                User(email=email, hashed_password=hashed, activation_link=activation_link),
                role.id,
            )
        except IntegrityError as exc:
            # A concurrent registration for the same email won the insert.
            raise ConflictError() from exc

        self.notifier.notify_activation(email, activation_link)

        user = self.users.get_by_id(user_id)
        logger.info("Registered user %d", user_id)
        return self._start_session(user)

    async def activate(self, link: str) -> None:
        """Mark the owner of an activation link as activated. Safe to repeat."""
        user = self.users.get_by_activation_link(link) if link else None
        if user is None:
            raise InvalidActivationLinkError()
        self.users.set_activated(user.id)
        logger.info("Activated user %d", user.id)

    async def login(self, email: str, password: str) -> AuthResult:
        """Check credentials and start a new session, evicting any previous one.

        Unknown email and wrong password raise the same InvalidCredentialsError,
        and both cost one bcrypt comparison.
        """
        user = self.users.get_by_email(email)
        if user is None:
            await asyncio.to_thread(verify_password, password, dummy_hash(self.hash_rounds))
            raise InvalidCredentialsError()
        if not await asyncio.to_thread(verify_password, password, user.hashed_password):
            raise InvalidCredentialsError()
        logger.info("User %d logged in", user.id)
        return self._start_session(user)

    async def logout(self, refresh_token: str) -> RefreshSession:
        """Revoke the session holding refresh_token.

        Raises SessionNotFoundError (from the store) if no session holds it.
        """
        session = self.sessions.delete_by_token(refresh_token)
        logger.info("User %d logged out", session.user_id)
        return session

    async def refresh(self, refresh_token: str | None) -> AuthResult:
        """Exchange a live refresh token for a new pair (rotation)."""
        if not refresh_token:
            raise UnauthorizedError()

        claims = self.tokens.verify(refresh_token, REFRESH)
        stored = self.sessions.get_by_token(refresh_token)
        if claims is None or stored is None:
            logger.info(
                "Refresh rejected (verified=%s, stored=%s)",
                claims is not None,
                stored is not None,
            )
            raise UnauthorizedError()

        user = self.users.get_by_id(claims["id"])
        if user is None:
            raise UnauthorizedError()
        return self._start_session(user)

    def validate_access_token(self, token: str | None) -> dict | None:
        """Claims of a valid access token, or None. Used by the HTTP auth dependency."""
        if not token:
            return None
        return self.tokens.verify(token, ACCESS)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _start_session(self, user: User) -> AuthResult:
        profile = UserProfile.from_user(user)
        pair = self.tokens.issue_pair(profile)
        self.sessions.save(user.id, pair.refresh_token)
        return AuthResult(tokens=pair, user=profile)
