"""
api/routes/v1/auth.py -- Public authentication endpoints.

Routes:
  POST /api/v1/auth/register        -- create account; returns userId, email, token pair
  POST /api/v1/auth/login           -- password login; returns userId, email, token pair
  POST /api/v1/auth/refresh         -- exchange refresh token for a new pair
  POST /api/v1/auth/reset-request   -- mint a one-time reset token (always 200)
  POST /api/v1/auth/reset-complete  -- set a new password with a reset token

All five are public: they never pass through the authorization dependencies.

Handlers are plain `def`, not `async def`: bcrypt is CPU-bound, and FastAPI
runs sync handlers in its thread pool so hashing does not stall the event loop.

Bodies are taken as raw JSON (Any) and handed to AuthFlows, which validates
them field by field. Errors are raised as AuthError subclasses and rendered
by the handler in api/main.py.

Security:
  Cache-Control: no-store on every response that carries a token.
  Request bodies are never logged.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Response

from api.models import AuthResponse, MessageResponse, ResetRequestResponse, TokenPairResponse
from auth.dependencies import get_auth_flows
from auth.flows import AuthFlows
from auth.models import AuthSession

router = APIRouter()


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"


def _session_response(session: AuthSession) -> AuthResponse:
    return AuthResponse(
        user_id=session.user_id,
        email=session.email,
        access_token=session.access_token,
        refresh_token=session.refresh_token,
    )


@router.post("/auth/register", response_model=AuthResponse)
def register(
    response: Response,
    payload: Any = Body(default=None),
    flows: AuthFlows = Depends(get_auth_flows),
) -> AuthResponse:
    """Create an account and return a fresh token pair.

    400 on missing/invalid fields, bad email format or weak password;
    409 if the email is already registered.
    """
    session = flows.register(payload)
    _no_store(response)
    return _session_response(session)


@router.post("/auth/login", response_model=AuthResponse)
def login(
    response: Response,
    payload: Any = Body(default=None),
    flows: AuthFlows = Depends(get_auth_flows),
) -> AuthResponse:
    """Authenticate with email and password.

    Unknown email and wrong password both return 401 "Invalid credentials".
    """
    session = flows.login(payload)
    _no_store(response)
    return _session_response(session)


@router.post("/auth/refresh", response_model=TokenPairResponse)
def refresh(
    response: Response,
    payload: Any = Body(default=None),
    flows: AuthFlows = Depends(get_auth_flows),
) -> TokenPairResponse:
    pair = flows.refresh(payload)
    _no_store(response)
    return TokenPairResponse(access_token=pair.access_token, refresh_token=pair.refresh_token)


@router.post("/auth/reset-request", response_model=ResetRequestResponse)
def reset_request(
    response: Response,
    payload: Any = Body(default=None),
    flows: AuthFlows = Depends(get_auth_flows),
) -> ResetRequestResponse:
    """Start a password reset. Same 200 shape whether or not the account exists."""
    issued = flows.request_reset(payload)
    _no_store(response)
    return ResetRequestResponse(message=issued.message, reset_token=issued.reset_token)


@router.post("/auth/reset-complete", response_model=MessageResponse)
def reset_complete(
    payload: Any = Body(default=None),
    flows: AuthFlows = Depends(get_auth_flows),
) -> MessageResponse:
    return MessageResponse(message=flows.complete_reset(payload))
