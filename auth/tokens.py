"""
auth/tokens.py -- Signed access/refresh token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. The algorithm is fixed; decode() is always
       called with algorithms=[HS256] so a token cannot pick its own ("none",
       RS256-with-HMAC-key confusion).

  Secret: injected at construction. TokenService never fetches or caches the
       secret itself -- auth.secret_provider owns that, and the api layer
       builds a TokenService from the cached value on each request.

  Claims: payloads carry exactly userId, email (access only), type, iat, exp.
       Nothing is stored server-side; possession of a valid access token is
       proof of identity.

  verify(): one call walks Presented -> Parsed -> SignatureChecked ->
       ExpiryChecked -> Valid | Rejected. Every rejection raises TokenError
       with the same generic message; the reason goes to the debug log only.
       The caller states which token type it expects and verify() enforces
       it, returning AccessClaims or RefreshClaims.

  Expiry: a token is rejected when exp <= now (strict). python-jose's own exp
       check is disabled so the comparison uses the injected clock and the
       boundary is exact.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Literal

from jose import JWTError, jwt

from auth.errors import TokenError
from auth.models import AccessClaims, Claims, RefreshClaims

logger = logging.getLogger("authcore.tokens")

_ALGORITHM = "HS256"

ACCESS_TOKEN_TTL_SECONDS = 60 * 60  # 1 hour
REFRESH_TOKEN_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 days

TokenType = Literal["access", "refresh"]


def _epoch_seconds() -> int:
    return int(time.time())


def _is_int(value: Any) -> bool:
    # bool is an int subclass; a JSON true is not a timestamp.
    return isinstance(value, int) and not isinstance(value, bool)


class TokenService:
    """Issue and verify HS256-signed tokens with one fixed secret.

    Usage:
        tokens = TokenService(secret)
        access = tokens.issue_access_token(user_id, email)
        claims = tokens.verify(access, "access")
        tokens.extract_user_id(claims)  # == user_id
    """

    def __init__(self, secret: bytes, clock: Callable[[], int] = _epoch_seconds) -> None:
        if not secret:
            raise ValueError("TokenService requires a non-empty signing secret")
        self._secret = secret
        self._clock = clock

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def issue_access_token(self, user_id: str, email: str) -> str:
        iat = self._clock()
        payload = {
            "userId": user_id,
            "email": email,
            "type": "access",
            "iat": iat,
            "exp": iat + ACCESS_TOKEN_TTL_SECONDS,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def issue_refresh_token(self, user_id: str) -> str:
        iat = self._clock()
        payload = {
            "userId": user_id,
            "type": "refresh",
            "iat": iat,
            "exp": iat + REFRESH_TOKEN_TTL_SECONDS,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self, token: str, expected_type: TokenType) -> Claims:
        """Verify signature, structure, expiry and type. Raises TokenError on any failure."""
        if not isinstance(token, str) or not token:
            raise self._reject("empty token")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise self._reject(f"decode failed: {type(exc).__name__}") from exc

        claims = self._to_claims(payload)

        if claims.expires_at <= self._clock():
            raise self._reject("expired")
        if claims.type != expected_type:
            raise self._reject(f"type {claims.type!r}, expected {expected_type!r}")
        return claims

    @staticmethod
    def extract_user_id(claims: Claims) -> str:
        return claims.user_id

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _to_claims(self, payload: dict) -> Claims:
        user_id = payload.get("userId")
        iat = payload.get("iat")
        exp = payload.get("exp")
        token_type = payload.get("type")

        if not isinstance(user_id, str) or not user_id:
            raise self._reject("missing userId")
        if not _is_int(iat) or not _is_int(exp):
            raise self._reject("iat/exp not integer timestamps")

        if token_type == "access":
            email = payload.get("email")
            if not isinstance(email, str) or not email:
                raise self._reject("access token without email")
            return AccessClaims(user_id=user_id, email=email, issued_at=iat, expires_at=exp)
        if token_type == "refresh":
            return RefreshClaims(user_id=user_id, issued_at=iat, expires_at=exp)
        raise self._reject("unknown token type")

    @staticmethod
    def _reject(reason: str) -> TokenError:
        logger.debug("Token rejected: %s", reason)
        return TokenError()
