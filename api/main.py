"""
api/main.py -- FastAPI application entry point for authcore.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one access-log line per request

Lifespan wires the process-wide collaborators onto app.state at startup
(user store, password service, cached secret provider) and disposes of the
store on shutdown. Everything request-scoped is built by the dependencies in
auth/dependencies.py.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.errors import AuthError, InternalError, RateLimitError
from auth.passwords import PasswordService
from auth.secret_provider import build_secret_provider
from auth.store import UserStore
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authcore.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order:
      1. User store -- creates the schema if missing.
      2. Password service -- precomputes the timing-equalization hash.
      3. Secret provider -- warms the signing-secret cache. A failure here is
         logged, not fatal: the first request retries and gets a 500 if the
         source is still down, and nothing bad is cached in between.
    """
    logger.info("authcore API starting up")
    app.state.user_store = UserStore(_settings.database_url)
    logger.info("User store initialized")
    app.state.passwords = PasswordService()
    app.state.secret_name = _settings.secret_name
    app.state.secret_provider = build_secret_provider(_settings)
    try:
        app.state.secret_provider.get_signing_secret(app.state.secret_name)
    except InternalError as exc:
        logger.warning("Signing secret not available at startup (%s); will retry on first request", exc)

    yield

    app.state.user_store.close()
    logger.info("authcore API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="authcore API",
    description="Stateless token authentication: register, login, refresh, password reset, own-profile access.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# ---------------------------------------------------------------------------
# Request logging middleware
#
# Logs method, path, status, latency and client host. Never the body or the
# Authorization header: both can carry passwords or tokens.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {"error": ..., "details"?: [...]} body so API
# clients can parse errors uniformly.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, error: str, details: list[str] | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details or None)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render any AuthError with its own status and message.

    5xx errors (StoreError, CryptoError, InternalError) are logged with their
    internal detail and cause; the client only sees the generic message.
    """
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
    response = _error_response(exc.status_code, exc.message, exc.details)
    if isinstance(exc, RateLimitError):
        response.headers["Retry-After"] = str(exc.retry_after)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return the uniform error body for routing errors (unknown path, wrong method)."""
    response = _error_response(exc.status_code, str(exc.detail))
    for name, value in (exc.headers or {}).items():
        response.headers[name] = value
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when FastAPI itself rejects the request (bad JSON, bad profile field types)."""
    errors = exc.errors()
    if any(e.get("type") == "json_invalid" for e in errors):
        return _error_response(400, "Invalid JSON in request body")
    details = []
    for e in errors:
        loc = ".".join(str(part) for part in e.get("loc", ()) if part != "body")
        details.append(f"{loc}: {e.get('msg', 'invalid value')}" if loc else e.get("msg", "invalid value"))
    return _error_response(400, "Validation failed", details)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "Internal server error")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. Public.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and a database round-trip check."""
    store_ok = request.app.state.user_store.ping()
    return HealthResponse(
        status="healthy" if store_ok else "degraded",
        version=__version__,
        components={"app": "ok", "database": "ok" if store_ok else "error"},
    )
