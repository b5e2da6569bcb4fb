"""
auth/validation.py -- Email shape checks and per-endpoint payload validation.

validate_payload() checks a decoded JSON body against the field table for one
PayloadKind and reports one message per missing or wrong-typed field.
parse_payload() runs the same checks and, when they pass, returns the closed
request variant for that kind (RegisterRequest, LoginRequest, ...). Flows only
ever see the variant.

Empty strings count as missing: an empty email or password is never a useful
value and the caller gets the same "Missing required field" message.

No DNS lookups. The email check is a shape check only.
"""

from __future__ import annotations

import re
from typing import Any

from auth.errors import ValidationError
from auth.models import (
    AuthRequest,
    LoginRequest,
    PayloadKind,
    RefreshRequest,
    RegisterRequest,
    ResetCompleteRequest,
    ResetRequest,
    ValidationResult,
)

# local part, "@", domain labels, a dot, and an alphabetic TLD of 2+ chars.
_EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}$")

# (wire name, attribute name) per kind. Order is the order errors are reported.
_PAYLOAD_FIELDS: dict[PayloadKind, tuple[tuple[str, str], ...]] = {
    PayloadKind.register: (("email", "email"), ("password", "password")),
    PayloadKind.login: (("email", "email"), ("password", "password")),
    PayloadKind.refresh: (("refreshToken", "refresh_token"),),
    PayloadKind.reset_request: (("email", "email"),),
    PayloadKind.reset_complete: (("resetToken", "reset_token"), ("newPassword", "new_password")),
}

_REQUEST_TYPES: dict[PayloadKind, type] = {
    PayloadKind.register: RegisterRequest,
    PayloadKind.login: LoginRequest,
    PayloadKind.refresh: RefreshRequest,
    PayloadKind.reset_request: ResetRequest,
    PayloadKind.reset_complete: ResetCompleteRequest,
}


def validate_email(value: object) -> bool:
    """Return True if value looks like local@domain.tld."""
    if not isinstance(value, str) or len(value) > 254:
        return False
    return _EMAIL_RE.match(value) is not None


def validate_payload(kind: PayloadKind, body: Any) -> ValidationResult:
    """Check required fields and their types for one endpoint.

    Returns ValidationResult(valid=False) with one error string per bad field,
    e.g. "Missing required field: email".
    """
    if not isinstance(body, dict):
        return ValidationResult(valid=False, errors=["Request body must be a JSON object"])

    errors: list[str] = []
    for wire_name, _attr in _PAYLOAD_FIELDS[kind]:
        value = body.get(wire_name)
        if value is None or value == "":
            errors.append(f"Missing required field: {wire_name}")
        elif not isinstance(value, str):
            errors.append(f"Invalid type for field: {wire_name} (expected string)")
    return ValidationResult(valid=not errors, errors=errors)


def parse_payload(kind: PayloadKind, body: Any) -> AuthRequest:
    """Validate body and return the request variant for kind.

    Raises ValidationError carrying every field-level message.
    """
    result = validate_payload(kind, body)
    if not result.valid:
        raise ValidationError(details=result.errors)
    values = {attr: body[wire_name] for wire_name, attr in _PAYLOAD_FIELDS[kind]}
    return _REQUEST_TYPES[kind](**values)
