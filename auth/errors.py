"""
auth/errors.py -- Exception hierarchy for the authentication core.

Every failure a flow can report maps to exactly one class here, and every
class carries the HTTP status and the user-visible message. The api/ layer
renders any AuthError as {"error": message, "details"?: [...]} without
inspecting which subclass it got.

Message policy:
  ValidationError     -- specific, one entry per violated field or rule.
  AuthenticationError -- always generic. Unknown email and wrong password,
                         bad signature and expired token, all collapse to the
                         same message so callers cannot enumerate accounts.
  InternalError       -- generic to the caller. The detail passed as
                         `internal_detail` is for logs only.

Plaintext passwords and reset tokens must never be placed in any message,
detail or internal_detail.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all errors raised by the authentication core."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: list[str] | None = None) -> None:
        self.message = message or self.default_message
        self.details = list(details) if details else []
        super().__init__(self.message)


class ValidationError(AuthError):
    """Request payload failed field-level validation (400)."""

    status_code = 400
    default_message = "Validation failed"


class AuthenticationError(AuthError):
    """Credentials or token could not be verified (401)."""

    status_code = 401
    default_message = "Invalid credentials"


class TokenError(AuthenticationError):
    """Signed token failed verification: signature, structure, expiry or type."""

    default_message = "Invalid or expired token"


class AuthorizationError(AuthError):
    """Authenticated caller tried to act on another user's identity (403)."""

    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AuthError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AuthError):
    """Email already registered (409)."""

    status_code = 409
    default_message = "Email already registered"


class RateLimitError(AuthError):
    """Raised by a surrounding throttling layer, never by the core itself (429)."""

    status_code = 429
    default_message = "Too many requests"

    def __init__(self, message: str | None = None, retry_after: int = 60) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class InternalError(AuthError):
    """Unexpected failure. Reported generically, logged with full detail (500)."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, internal_detail: str = "", message: str | None = None) -> None:
        super().__init__(message)
        self.internal_detail = internal_detail

    def __str__(self) -> str:
        return self.internal_detail or self.message


class StoreError(InternalError):
    """The user store failed (connection, query, constraint other than email)."""


class CryptoError(InternalError):
    """The password-hashing primitive failed."""
