"""
auth/tokens.py -- JWT signing/verification and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens are signed with the
       same SECRET_KEY and carry the public user profile (id, email,
       isActivated, roles), a typ claim ("access" or "refresh"), a random
       jti, and an expiry. Access tokens live
       30 minutes, refresh tokens 30 days by default.

       The jti makes every minted token a distinct string. Refresh rotation
       and revocation compare the literal token against the stored session,
       so two tokens for the same profile minted within one second must not
       collide.

       verify() returns None on any failure (malformed, bad signature,
       expired). It never raises: callers treat verification as a lookup
       that can miss, and AuthService turns a miss into 401.

  Passwords: bcrypt directly (no passlib wrapper). The cost factor comes
       from Settings.password_hash_rounds. dummy_hash() enables timing
       equalization in AuthService.login() so response time does not reveal
       whether an email is registered.

Layer rule: no imports from api/. Settings are passed in, not read here.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import TokenPair, UserProfile

if TYPE_CHECKING:
    from core.config import Settings

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
    password length well below that.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A malformed stored hash counts
    as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def generate_activation_link() -> str:
    """Opaque, unique activation token embedded in the emailed link."""
    return str(uuid.uuid4())


@lru_cache(maxsize=None)
def dummy_hash(rounds: int) -> str:
    """Hash to check against when the email is unknown.

    Uses the configured cost factor so an unknown email costs the same bcrypt
    work as a wrong password. Cached per cost factor; AuthService warms the
    cache at construction so the first failed login is not slower than later
    ones.
    """
    return hash_password("tokenward_timing_dummy", rounds=rounds)


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------


class TokenService:
    """Stateless signer/verifier for access and refresh tokens.

    Usage:
        tokens = TokenService(settings)
        pair = tokens.issue_pair(profile)
        claims = tokens.verify(pair.refresh_token)   # dict or None
    """

    def __init__(self, settings: Settings) -> None:
        self._secret_key = settings.secret_key
        self.access_ttl = timedelta(seconds=settings.access_token_expire_seconds)
        self.refresh_ttl = timedelta(seconds=settings.refresh_token_expire_seconds)

    def sign(self, payload: dict, ttl: timedelta) -> str:
        """Encode payload as a signed JWT expiring ttl from now.

        A fresh jti is added on every call. The caller's dict is not mutated.
        """
        claims = dict(payload)
        claims["jti"] = uuid.uuid4().hex
        claims["exp"] = datetime.now(timezone.utc) + ttl
        return jwt.encode(claims, self._secret_key, algorithm=ALGORITHM)

    def verify(self, token: str, token_type: str | None = None) -> dict | None:
        """Decode and verify a JWT. Returns the claims dict or None on any failure.

        Expired, tampered, malformed and wrong-key tokens all return None;
        the caller cannot (and need not) tell them apart. With token_type set,
        a token of the other kind also returns None, so a refresh token cannot
        stand in for an access token.
        """
        if not token:
            return None
        try:
            claims = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM])
        except JWTError:
            return None
        if not isinstance(claims.get("id"), int):
            return None
        if token_type is not None and claims.get("typ") != token_type:
            return None
        return claims

    def issue_pair(self, profile: UserProfile) -> TokenPair:
        """Mint an access/refresh pair carrying the same profile claims."""
        claims = profile.to_claims()
        return TokenPair(
            access_token=self.sign({**claims, "typ": ACCESS}, self.access_ttl),
            refresh_token=self.sign({**claims, "typ": REFRESH}, self.refresh_ttl),
        )
