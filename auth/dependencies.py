"""
auth/dependencies.py -- FastAPI Depends() helpers: service wiring and authorization.

Service wiring:
  get_token_service() builds a TokenService from the process-cached signing
  secret on app.state.secret_provider. Building one is cheap; fetching the
  secret happens once per process (see auth/secret_provider.py). If that
  fetch fails the in-flight request gets a 500 and the next request retries.

  get_auth_flows() assembles AuthFlows from app.state and the token service.

Authorization (identity-scoped endpoints only):
  get_access_claims() -- Authorization: Bearer <token> header -> AccessClaims.
      401 if the header is missing or malformed, if the token fails
      verification, or if it is not an access token.
  require_self()      -- get_access_claims() + the {user_id} path parameter
      must equal claims.user_id, else 403. Returns the caller's user id for
      the downstream handler.

Public endpoints (register, login, refresh, reset-request, reset-complete)
never use these.

Layer rule: no imports from api/. This module may import from fastapi
because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.errors import AuthenticationError, AuthorizationError
from auth.flows import AuthFlows
from auth.models import AccessClaims
from auth.tokens import TokenService


def get_token_service(request: Request) -> TokenService:
    state = request.app.state
    secret = state.secret_provider.get_signing_secret(state.secret_name)
    return TokenService(secret)


def get_auth_flows(request: Request, tokens: TokenService = Depends(get_token_service)) -> AuthFlows:
    state = request.app.state
    return AuthFlows(state.user_store, state.passwords, tokens)


def bearer_token(request: Request) -> str | None:
    """Return the token from "Authorization: Bearer <token>", or None.

    Starlette header lookup is case-insensitive. The scheme must be exactly
    "Bearer" followed by one space-free token.
    """
    auth_header = request.headers.get("Authorization", "")
    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


def get_access_claims(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
) -> AccessClaims:
    """Require a valid access token. Raises AuthenticationError (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: AccessClaims = Depends(get_access_claims)): ...
    """
    token = bearer_token(request)
    if token is None:
        raise AuthenticationError("Authentication required")
    return tokens.verify(token, "access")


def require_self(user_id: str, claims: AccessClaims = Depends(get_access_claims)) -> str:
    """Require the caller to be the user named in the {user_id} path parameter.

    Raises AuthenticationError (401) via get_access_claims(), then
    AuthorizationError (403) if the ids differ. Returns the caller's user id.

    Use as a FastAPI dependency on routes declaring a {user_id} path param:
        @router.get("/users/{user_id}")
        def route(caller_id: str = Depends(require_self)): ...
    """
    caller_id = TokenService.extract_user_id(claims)
    if caller_id != user_id:
        raise AuthorizationError()
    return caller_id
