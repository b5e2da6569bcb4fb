"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store, services and flows do the work.

Three groups live here:
  - Persistent: UserRecord.
  - Derived: ValidationResult, AccessClaims / RefreshClaims (decoded tokens).
  - Closed request variants: one frozen dataclass per public flow. They are
    only ever built by auth.validation.parse_payload(), after every field has
    been checked, so a flow never probes a raw dict.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Union

# ---------------------------------------------------------------------------
# Persistent record
# ---------------------------------------------------------------------------


@dataclass
class UserRecord:
    """Identity and credentials for one user.

    hashed_password is always a bcrypt string, never plaintext.

    reset_token_hash / reset_token_expiry / reset_token_lookup are written and
    cleared together by the store: either all three are set or none is.
    reset_token_hash is a bcrypt hash of the one-time reset token;
    reset_token_lookup is its SHA-256 hex digest, used only to find the row.

    profile holds the user-editable fields (name, location, budget figures...)
    as a plain dict, persisted as a JSON blob.
    """

    user_id: str
    email: str
    hashed_password: str
    created_at: str | None = None
    reset_token_hash: str | None = None
    reset_token_expiry: str | None = None  # ISO 8601, UTC
    reset_token_lookup: str | None = None
    profile: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


class PayloadKind(str, Enum):
    register = "register"
    login = "login"
    refresh = "refresh"
    reset_request = "reset-request"
    reset_complete = "reset-complete"


# ---------------------------------------------------------------------------
# Token claims
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccessClaims:
    user_id: str
    email: str
    issued_at: int
    expires_at: int
    type: Literal["access"] = "access"


@dataclass(frozen=True)
class RefreshClaims:
    user_id: str
    issued_at: int
    expires_at: int
    type: Literal["refresh"] = "refresh"


Claims = Union[AccessClaims, RefreshClaims]


# ---------------------------------------------------------------------------
# Request variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegisterRequest:
    email: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class LoginRequest:
    email: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class RefreshRequest:
    refresh_token: str = field(repr=False)


@dataclass(frozen=True)
class ResetRequest:
    email: str


@dataclass(frozen=True)
class ResetCompleteRequest:
    reset_token: str = field(repr=False)
    new_password: str = field(repr=False)


AuthRequest = Union[RegisterRequest, LoginRequest, RefreshRequest, ResetRequest, ResetCompleteRequest]


# ---------------------------------------------------------------------------
# Flow results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthSession:
    """Result of a successful register or login."""

    user_id: str
    email: str
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class ResetIssued:
    """Result of a reset request. reset_token is plaintext and returned exactly once."""

    message: str
    reset_token: str = field(repr=False)
