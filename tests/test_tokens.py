"""Unit tests for auth/tokens.py -- token issuance and verification.

Covers:
- exp - iat is exactly 3600 (access) and 604800 (refresh)
- payloads carry exactly the documented claims
- verify() rejects a foreign signature, expiry at/after exp, malformed input,
  unsupported algorithms and the wrong token type
- extract_user_id() round-trips the issued user id
"""

from __future__ import annotations

import pytest
from jose import jwt

from auth.errors import AuthenticationError, TokenError
from auth.models import AccessClaims, RefreshClaims
from auth.tokens import ACCESS_TOKEN_TTL_SECONDS, REFRESH_TOKEN_TTL_SECONDS, TokenService

SECRET = b"unit-test-secret-0123456789abcdef0123"
T0 = 1_700_000_000


class FakeClock:
    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def _unverified(token: str) -> dict:
    return jwt.get_unverified_claims(token)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tokens(clock) -> TokenService:
    return TokenService(SECRET, clock=clock)


class TestIssue:
    def test_access_token_claims(self, tokens):
        claims = _unverified(tokens.issue_access_token("u-1", "alice@example.com"))
        assert claims == {
            "userId": "u-1",
            "email": "alice@example.com",
            "type": "access",
            "iat": T0,
            "exp": T0 + 3600,
        }

    def test_refresh_token_claims(self, tokens):
        claims = _unverified(tokens.issue_refresh_token("u-1"))
        assert claims == {"userId": "u-1", "type": "refresh", "iat": T0, "exp": T0 + 604800}

    def test_lifetimes_are_fixed(self, tokens, clock):
        for now in (T0, T0 + 17, T0 + 86_400):
            clock.now = now
            access = _unverified(tokens.issue_access_token("u", "e@x.io"))
            refresh = _unverified(tokens.issue_refresh_token("u"))
            assert access["exp"] - access["iat"] == ACCESS_TOKEN_TTL_SECONDS == 3600
            assert refresh["exp"] - refresh["iat"] == REFRESH_TOKEN_TTL_SECONDS == 604800

    def test_header_uses_hs256(self, tokens):
        header = jwt.get_unverified_header(tokens.issue_access_token("u", "e@x.io"))
        assert header["alg"] == "HS256"

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenService(b"")


class TestVerify:
    def test_access_roundtrip(self, tokens):
        claims = tokens.verify(tokens.issue_access_token("u-1", "alice@example.com"), "access")
        assert isinstance(claims, AccessClaims)
        assert claims.email == "alice@example.com"
        assert tokens.extract_user_id(claims) == "u-1"

    def test_refresh_roundtrip(self, tokens):
        claims = tokens.verify(tokens.issue_refresh_token("u-1"), "refresh")
        assert isinstance(claims, RefreshClaims)
        assert claims.expires_at - claims.issued_at == 604800

    def test_foreign_secret_rejected(self, tokens, clock):
        other = TokenService(b"another-secret-0123456789abcdef0123", clock=clock)
        with pytest.raises(TokenError):
            tokens.verify(other.issue_access_token("u-1", "a@b.co"), "access")

    def test_expired_exactly_at_exp(self, tokens, clock):
        token = tokens.issue_access_token("u-1", "a@b.co")
        clock.now = T0 + 3599
        tokens.verify(token, "access")
        clock.now = T0 + 3600
        with pytest.raises(TokenError):
            tokens.verify(token, "access")

    def test_expired_refresh_rejected(self, tokens, clock):
        token = tokens.issue_refresh_token("u-1")
        clock.now = T0 + REFRESH_TOKEN_TTL_SECONDS + 1
        with pytest.raises(TokenError):
            tokens.verify(token, "refresh")

    def test_wrong_type_rejected_both_ways(self, tokens):
        with pytest.raises(TokenError):
            tokens.verify(tokens.issue_refresh_token("u-1"), "access")
        with pytest.raises(TokenError):
            tokens.verify(tokens.issue_access_token("u-1", "a@b.co"), "refresh")

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "eyJhbGciOiJIUzI1NiJ9.e30.x"])
    def test_malformed_rejected(self, tokens, token):
        with pytest.raises(TokenError):
            tokens.verify(token, "access")

    def test_other_algorithm_rejected(self, tokens):
        token = jwt.encode(
            {"userId": "u-1", "email": "a@b.co", "type": "access", "iat": T0, "exp": T0 + 3600},
            SECRET,
            algorithm="HS512",
        )
        with pytest.raises(TokenError):
            tokens.verify(token, "access")

    @pytest.mark.parametrize(
        "payload",
        [
            {"email": "a@b.co", "type": "access", "iat": T0, "exp": T0 + 3600},
            {"userId": "u", "type": "access", "iat": T0, "exp": T0 + 3600},
            {"userId": "u", "email": "a@b.co", "type": "admin", "iat": T0, "exp": T0 + 3600},
            {"userId": "u", "email": "a@b.co", "type": "access", "iat": T0},
            {"userId": "u", "email": "a@b.co", "type": "access", "iat": T0, "exp": True},
        ],
    )
    def test_incomplete_claims_rejected(self, tokens, payload):
        token = jwt.encode(payload, SECRET, algorithm="HS256")
        with pytest.raises(TokenError):
            tokens.verify(token, "access")

    def test_token_error_is_generic_authentication_error(self, tokens):
        with pytest.raises(AuthenticationError) as exc_info:
            tokens.verify("garbage", "access")
        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Invalid or expired token"
