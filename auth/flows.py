"""
auth/flows.py -- Register, login, refresh and password-reset orchestration.

AuthFlows wires the four leaves together: the validation engine, the
password service, the token service and the user store. Each public method
takes the decoded JSON body of one endpoint and returns a result dataclass or
raises an AuthError subclass. The api layer only translates.

Ordering rules shared by every flow:
  1. Payload validation happens first, before any store access or mutation.
  2. Authentication failures short-circuit before any write.
  3. Store and crypto failures are not retried here; they surface as
     StoreError / CryptoError and the caller decides.

Enumeration resistance:
  login()         -- unknown email and wrong password raise the same
                     AuthenticationError, and both run one bcrypt check.
  request_reset() -- unknown email returns the same success shape, with a
                     fresh random token that is simply never stored.

Logging: user ids only. Emails in failure paths, passwords, reset tokens and
bearer tokens are never logged.

Layer rule: no imports from api/. No FastAPI.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from auth.errors import AuthenticationError, ConflictError, TokenError, ValidationError
from auth.models import (
    AuthSession,
    PayloadKind,
    ResetIssued,
    TokenPair,
    UserRecord,
)
from auth.passwords import PasswordService
from auth.store import UserStore
from auth.tokens import TokenService
from auth.validation import parse_payload, validate_email

logger = logging.getLogger("authcore.flows")

RESET_TOKEN_TTL = timedelta(hours=1)

RESET_REQUEST_MESSAGE = "If the email exists, a reset token has been generated"
RESET_COMPLETE_MESSAGE = "Password reset successful"

_INVALID_CREDENTIALS = "Invalid credentials"
_INVALID_RESET_TOKEN = "Invalid or expired reset token"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_reset_token() -> str:
    """Return a random opaque reset token (256 bits, URL-safe)."""
    return secrets.token_urlsafe(32)


def reset_lookup_key(reset_token: str) -> str:
    """SHA-256 hex digest of a reset token, used as its indexed lookup key.

    The token carries 256 bits of entropy, so an unsalted digest is not
    brute-forceable; the salted bcrypt hash is still what proves the match.
    """
    return hashlib.sha256(reset_token.encode("utf-8")).hexdigest()


class AuthFlows:
    """The five public authentication flows.

    Usage:
        flows = AuthFlows(store, PasswordService(), TokenService(secret))
        session = flows.register({"email": "alice@example.com", "password": "Passw0rd"})
        pair = flows.refresh({"refreshToken": session.refresh_token})
    """

    def __init__(
        self,
        store: UserStore,
        passwords: PasswordService,
        tokens: TokenService,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.passwords = passwords
        self.tokens = tokens
        self._clock = clock

    # ------------------------------------------------------------------
    # Register / login
    # ------------------------------------------------------------------

    def register(self, body: Any) -> AuthSession:
        request = parse_payload(PayloadKind.register, body)
        if not validate_email(request.email):
            raise ValidationError(details=["Invalid email format"])

        # Cheap early exit. The UNIQUE index in create() is what actually
        # settles a race between two registrations for the same address.
        if self.store.get_by_email(request.email) is not None:
            raise ConflictError()

        strength = self.passwords.validate_strength(request.password)
        if not strength.valid:
            raise ValidationError(details=strength.errors)

        hashed = self.passwords.hash(request.password)
        user = self.store.create(str(uuid.uuid4()), request.email, hashed)
        logger.info("Registered user %s", user.user_id)
        return self._session_for(user)

    def login(self, body: Any) -> AuthSession:
        request = parse_payload(PayloadKind.login, body)
        user = self.store.get_by_email(request.email)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt.
            self.passwords.verify_dummy(request.password)
            logger.info("Login failed: unknown account")
            raise AuthenticationError(_INVALID_CREDENTIALS)
        if not self.passwords.verify(request.password, user.hashed_password):
            logger.info("Login failed for user %s: bad password", user.user_id)
            raise AuthenticationError(_INVALID_CREDENTIALS)
        logger.info("User %s logged in", user.user_id)
        return self._session_for(user)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, body: Any) -> TokenPair:
        """Exchange a refresh token for a new access+refresh pair.

        The refresh token is the credential. The store is read only to put
        the current email into the new access token; a user that no longer
        exists cannot refresh.
        """
        request = parse_payload(PayloadKind.refresh, body)
        claims = self.tokens.verify(request.refresh_token, "refresh")

        user_id = self.tokens.extract_user_id(claims)
        user = self.store.get_by_id(user_id)
        if user is None:
            logger.info("Refresh rejected: user %s no longer exists", user_id)
            raise TokenError()
        return TokenPair(
            access_token=self.tokens.issue_access_token(user.user_id, user.email),
            refresh_token=self.tokens.issue_refresh_token(user.user_id),
        )

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def request_reset(self, body: Any) -> ResetIssued:
        """Phase one: mint a one-time reset token for the account behind an email.

        The plaintext token is returned once; out-of-band delivery belongs to
        the surrounding system. Only its bcrypt hash, lookup key and expiry are
        stored. A second request overwrites the first token.
        """
        request = parse_payload(PayloadKind.reset_request, body)
        if not validate_email(request.email):
            raise ValidationError(details=["Invalid email format"])

        reset_token = generate_reset_token()
        user = self.store.get_by_email(request.email)
        if user is None:
            # Same bcrypt cost as the real branch so timing does not reveal the account.
            self.passwords.hash(reset_token)
            return ResetIssued(message=RESET_REQUEST_MESSAGE, reset_token=reset_token)

        token_hash = self.passwords.hash(reset_token)
        expiry = self._clock() + RESET_TOKEN_TTL
        self.store.set_reset_token(user.user_id, token_hash, expiry, reset_lookup_key(reset_token))
        logger.info("Reset token issued for user %s (expires %s)", user.user_id, expiry.isoformat())
        return ResetIssued(message=RESET_REQUEST_MESSAGE, reset_token=reset_token)

    def complete_reset(self, body: Any) -> str:
        """Phase two: set a new password if the reset token is valid and unexpired.

        Every token failure (unknown, hash mismatch, expired, already used)
        raises the same AuthenticationError. On success the password changes
        and the token is cleared in one conditional update.
        """
        request = parse_payload(PayloadKind.reset_complete, body)
        strength = self.passwords.validate_strength(request.new_password)
        if not strength.valid:
            raise ValidationError(details=strength.errors)

        lookup = reset_lookup_key(request.reset_token)
        user = self.store.get_by_reset_lookup(lookup)
        if user is None or not user.reset_token_hash:
            raise AuthenticationError(_INVALID_RESET_TOKEN)
        if not self.passwords.verify(request.reset_token, user.reset_token_hash):
            raise AuthenticationError(_INVALID_RESET_TOKEN)
        if self._reset_expired(user):
            self.store.clear_reset_token(user.user_id, reset_lookup=lookup)
            logger.info("Expired reset token presented for user %s; cleared", user.user_id)
            raise AuthenticationError(_INVALID_RESET_TOKEN)

        hashed = self.passwords.hash(request.new_password)
        if not self.store.update_password(user.user_id, hashed, reset_lookup=lookup):
            # Lost a race with another completion of the same token.
            raise AuthenticationError(_INVALID_RESET_TOKEN)
        logger.info("Password reset completed for user %s", user.user_id)
        return RESET_COMPLETE_MESSAGE

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _session_for(self, user: UserRecord) -> AuthSession:
        return AuthSession(
            user_id=user.user_id,
            email=user.email,
            access_token=self.tokens.issue_access_token(user.user_id, user.email),
            refresh_token=self.tokens.issue_refresh_token(user.user_id),
        )

    def _reset_expired(self, user: UserRecord) -> bool:
        if not user.reset_token_expiry:
            return True
        try:
            expiry = datetime.fromisoformat(user.reset_token_expiry)
        except ValueError:
            logger.warning("Unparsable reset_token_expiry on user %s", user.user_id)
            return True
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return self._clock() >= expiry
