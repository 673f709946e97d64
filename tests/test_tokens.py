"""Unit tests for auth/tokens.py -- JWT signing/verification and password hashing.

Covers:
- verify() returns claims for a fresh token and None for every failure mode
  (expired, tampered, wrong key, malformed, empty) without raising
- typ enforcement: a refresh token is not an access token and vice versa
- issue_pair() lifetimes follow Settings and every token is unique
- bcrypt helpers honour the configured cost factor
"""

from __future__ import annotations

import time
from datetime import timedelta

import pytest

from auth.models import UserProfile
from auth.tokens import (
    ACCESS,
    REFRESH,
    TokenService,
    dummy_hash,
    generate_activation_link,
    hash_password,
    verify_password,
)
from conftest import make_test_settings

PROFILE = UserProfile(id=7, email="bob@example.com", is_activated=False, roles=("USER",))


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(make_test_settings())


# ---------------------------------------------------------------------------
# verify
# ---------------------------------------------------------------------------


class TestVerify:
    def test_fresh_token_round_trips_claims(self, token_service: TokenService) -> None:
        token = token_service.sign(PROFILE.to_claims(), timedelta(minutes=5))

        claims = token_service.verify(token)

        assert claims["id"] == 7
        assert claims["email"] == "bob@example.com"
        assert claims["isActivated"] is False
        assert claims["roles"] == ["USER"]
        assert "jti" in claims and "exp" in claims

    def test_expired_token_yields_none(self, token_service: TokenService) -> None:
        token = token_service.sign(PROFILE.to_claims(), timedelta(seconds=-1))

        assert token_service.verify(token) is None

    def test_token_expires_after_ttl(self, token_service: TokenService) -> None:
        token = token_service.sign(PROFILE.to_claims(), timedelta(seconds=1))
        assert token_service.verify(token) is not None

        time.sleep(2.1)

        assert token_service.verify(token) is None

    def test_tampered_signature_yields_none(self, token_service: TokenService) -> None:
        token = token_service.sign(PROFILE.to_claims(), timedelta(minutes=5))
        header, payload, signature = token.split(".")
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]

        assert token_service.verify(f"{header}.{payload}.{flipped}") is None

    def test_token_from_other_secret_yields_none(self, token_service: TokenService) -> None:
        other = TokenService(make_test_settings(secret_key="another-secret-key-also-long-enough-xx"))
        token = other.sign(PROFILE.to_claims(), timedelta(minutes=5))

        assert token_service.verify(token) is None

    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c", "eyJhbGciOiJIUzI1NiJ9.e30."])
    def test_malformed_token_yields_none(self, token_service: TokenService, token: str) -> None:
        assert token_service.verify(token) is None

    def test_claims_without_user_id_yield_none(self, token_service: TokenService) -> None:
        token = token_service.sign({"email": "bob@example.com"}, timedelta(minutes=5))

        assert token_service.verify(token) is None


# ---------------------------------------------------------------------------
# issue_pair
# ---------------------------------------------------------------------------


class TestIssuePair:
    def test_pair_types_are_enforced(self, token_service: TokenService) -> None:
        pair = token_service.issue_pair(PROFILE)

        assert token_service.verify(pair.access_token, ACCESS) is not None
        assert token_service.verify(pair.refresh_token, REFRESH) is not None
        assert token_service.verify(pair.access_token, REFRESH) is None
        assert token_service.verify(pair.refresh_token, ACCESS) is None

    def test_lifetimes_follow_settings(self, token_service: TokenService) -> None:
        now = time.time()
        pair = token_service.issue_pair(PROFILE)

        access_exp = token_service.verify(pair.access_token)["exp"]
        refresh_exp = token_service.verify(pair.refresh_token)["exp"]

        assert access_exp - now == pytest.approx(30 * 60, abs=5)
        assert refresh_exp - now == pytest.approx(30 * 24 * 60 * 60, abs=5)

    def test_same_profile_same_second_gives_distinct_tokens(self, token_service: TokenService) -> None:
        first = token_service.issue_pair(PROFILE)
        second = token_service.issue_pair(PROFILE)

        assert first.refresh_token != second.refresh_token
        assert first.access_token != second.access_token

    def test_sign_does_not_mutate_payload(self, token_service: TokenService) -> None:
        payload = PROFILE.to_claims()
        token_service.sign(payload, timedelta(minutes=1))

        assert set(payload) == {"id", "email", "isActivated", "roles"}


# ---------------------------------------------------------------------------
# passwords
# ---------------------------------------------------------------------------


class TestPasswords:
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("s3cret!", rounds=4)

        assert hashed.startswith("$2b$04$")
        assert verify_password("s3cret!", hashed)
        assert not verify_password("S3cret!", hashed)

    def test_cost_factor_is_required(self) -> None:
        with pytest.raises(TypeError):
            hash_password("s3cret!")

    def test_malformed_hash_is_a_mismatch(self) -> None:
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_dummy_hash_uses_requested_cost(self) -> None:
        assert dummy_hash(4).startswith("$2b$04$")
        assert dummy_hash(4) is dummy_hash(4)

    def test_activation_links_are_unique(self) -> None:
        links = {generate_activation_link() for _ in range(50)}
        assert len(links) == 50
