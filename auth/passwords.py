"""
auth/passwords.py -- Password hashing, verification and strength rules.

Passwords: bcrypt used directly (no passlib wrapper). passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects,
and bcrypt 5.x raises on any input over 72 bytes. We truncate the encoded
input to 72 bytes ourselves in both hash() and verify(), which is exactly the
behaviour classic bcrypt always had, so hashes stay interoperable.

The cost factor is fixed at 10 rounds for the lifetime of the service. Reset
tokens are hashed with the same service, so they get the same cost.
"""

from __future__ import annotations

import re

import bcrypt

from auth.errors import CryptoError
from auth.models import ValidationResult

BCRYPT_ROUNDS = 10
_BCRYPT_MAX_BYTES = 72

_BCRYPT_HASH_RE = re.compile(r"^\$2[abxy]\$\d{2}\$[./A-Za-z0-9]{53}$")

_UPPER_RE = re.compile(r"[A-Z]")
_LOWER_RE = re.compile(r"[a-z]")
_DIGIT_RE = re.compile(r"[0-9]")

MIN_PASSWORD_LENGTH = 8


def is_bcrypt_hash(value: object) -> bool:
    """Return True if value has the shape of a bcrypt hash ($2b$10$...)."""
    return isinstance(value, str) and _BCRYPT_HASH_RE.match(value) is not None


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordService:
    """Hash and verify secrets with bcrypt; check password strength.

    Usage:
        passwords = PasswordService()
        hashed = passwords.hash("Passw0rd")
        passwords.verify("Passw0rd", hashed)        # True
        passwords.validate_strength("short").errors # every violated rule
    """

    def __init__(self) -> None:
        self.rounds = BCRYPT_ROUNDS
        # Computed once so the first unknown-email login is not measurably
        # slower than the rest. See verify_dummy().
        self._dummy_hash = self.hash("authcore_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of plain. Raises CryptoError if bcrypt fails."""
        try:
            return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")
        except (TypeError, ValueError, AttributeError) as exc:
            raise CryptoError(f"bcrypt hashing failed: {type(exc).__name__}") from exc

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed. Never raises on mismatch or a malformed hash."""
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except (TypeError, ValueError, AttributeError):
            return False

    def verify_dummy(self, plain: str) -> bool:
        """Run a full bcrypt check against a fixed hash and discard the result.

        Called when the account does not exist so the response takes as long
        as a wrong-password check and does not reveal account existence.
        """
        self.verify(plain, self._dummy_hash)
        return False

    @staticmethod
    def validate_strength(password: object) -> ValidationResult:
        """Check the four strength rules and report every violation, not just the first."""
        if not isinstance(password, str):
            return ValidationResult(valid=False, errors=["Password is required"])

        errors: list[str] = []
        if len(password) < MIN_PASSWORD_LENGTH:
            errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if not _UPPER_RE.search(password):
            errors.append("Password must contain at least 1 uppercase letter")
        if not _LOWER_RE.search(password):
            errors.append("Password must contain at least 1 lowercase letter")
        if not _DIGIT_RE.search(password):
            errors.append("Password must contain at least 1 number")
        return ValidationResult(valid=not errors, errors=errors)
