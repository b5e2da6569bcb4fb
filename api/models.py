"""
API request and response models for authcore REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire names are camelCase (userId, accessToken, ...). Python attributes stay
snake_case; the alias generator bridges them and FastAPI serialises
response_model instances by alias.

Auth request bodies are NOT modelled here. They are validated field by field
by auth.validation so each missing or wrong-typed field gets its own
message; pydantic would collapse them into its own error format.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Auth responses
# ---------------------------------------------------------------------------


class AuthResponse(_WireModel):
    """Response for POST /auth/register and POST /auth/login."""

    user_id: str
    email: str
    access_token: str
    refresh_token: str


class TokenPairResponse(_WireModel):
    """Response for POST /auth/refresh."""

    access_token: str
    refresh_token: str


class ResetRequestResponse(_WireModel):
    """Response for POST /auth/reset-request. Always 200, whether or not the email exists."""

    message: str
    reset_token: str


class MessageResponse(_WireModel):
    message: str


# ---------------------------------------------------------------------------
# User profile
# ---------------------------------------------------------------------------

# Money amounts: non-negative and finite. JSON Infinity/NaN would not survive the
# profile blob round-trip.
_Amount = Annotated[float, Field(ge=0, allow_inf_nan=False)]


class UserProfileUpdate(BaseModel):
    """Request body for PUT /users/{userId}.

    Every field is optional; fields not listed here are ignored. email is
    deliberately absent -- it is the login identifier.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: Optional[str] = Field(default=None, max_length=100)
    income: Optional[_Amount] = None
    rent: Optional[_Amount] = None
    grocery_budget: Optional[_Amount] = None
    savings: Optional[_Amount] = None
    has_car: Optional[bool] = None
    fuel_type: Optional[str] = Field(default=None, max_length=50)
    location: Optional[str] = Field(default=None, max_length=200)
    postcode: Optional[str] = Field(default=None, max_length=20)
    dietary_preferences: Optional[list[str]] = None
    subscriptions: Optional[list[str]] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Name must be a non-empty string")
        return value


class UserProfileResponse(_WireModel):
    """Response for GET/PUT /users/{userId}. Never carries password or reset-token fields."""

    user_id: str
    email: str
    created_at: str
    name: Optional[str] = None
    income: Optional[float] = None
    rent: Optional[float] = None
    grocery_budget: Optional[float] = None
    savings: Optional[float] = None
    has_car: Optional[bool] = None
    fuel_type: Optional[str] = None
    location: Optional[str] = None
    postcode: Optional[str] = None
    dietary_preferences: Optional[list[str]] = None
    subscriptions: Optional[list[str]] = None


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Uniform error body returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    error: str
    details: Optional[list[str]] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
