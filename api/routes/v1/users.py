"""
api/routes/v1/users.py -- Identity-scoped profile endpoints.

Routes:
  GET /api/v1/users/{user_id}  -- read own profile
  PUT /api/v1/users/{user_id}  -- update own profile fields

Auth policy: both require an access token whose userId equals the path
user_id (require_self). Missing/invalid token -> 401, other user -> 403,
and only then does a missing record produce 404.

Responses never include hashed_password or any reset-token field; the
mapping in _user_to_response() is the single place that decides what leaves.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import UserProfileResponse, UserProfileUpdate
from auth.dependencies import require_self
from auth.errors import NotFoundError, ValidationError
from auth.models import UserRecord
from auth.store import UserStore

router = APIRouter()


@router.get("/users/{user_id}", response_model=UserProfileResponse, response_model_exclude_none=True)
def get_user(request: Request, caller_id: str = Depends(require_self)) -> UserProfileResponse:
    """Return the caller's own profile."""
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(caller_id)
    if user is None:
        raise NotFoundError("User not found")
    return _user_to_response(user)


@router.put("/users/{user_id}", response_model=UserProfileResponse, response_model_exclude_none=True)
def update_user(
    request: Request,
    body: UserProfileUpdate,
    caller_id: str = Depends(require_self),
) -> UserProfileResponse:
    """Update any subset of the caller's profile fields. Unknown fields are ignored."""
    user_store: UserStore = request.app.state.user_store

    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationError("No valid fields to update")

    updated = user_store.update_profile(caller_id, updates)
    if updated is None:
        raise NotFoundError("User not found")
    return _user_to_response(updated)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _user_to_response(user: UserRecord) -> UserProfileResponse:
    profile = {k: v for k, v in user.profile.items() if k in UserProfileUpdate.model_fields}
    return UserProfileResponse(
        user_id=user.user_id,
        email=user.email,
        created_at=user.created_at or "",
        **profile,
    )
