"""
api/main.py -- FastAPI application factory for the NexusX auth service.

Run with:      uvicorn asgi:app --reload
               python main.py serve

create_app() builds the application explicitly: settings and the lifespan
are arguments, and every store client is constructed inside the lifespan
and published on app.state. Nothing opens a connection at import time.

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the frontend origins
  3. SlowAPIASGIMiddleware -- enforces GENERAL_RATE_LIMIT on routes without
                              a limit of their own

Lifespan handles startup (user store, session cache, Google client, the
AuthService that ties them together) and shutdown (close both stores)
symmetrically. A store that cannot be reached at startup aborts the process
before it starts listening.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIASGIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import AUTH_LIMIT_SCOPE, build_limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import build_router
from auth.errors import AuthServiceError, InternalError, RateLimited
from auth.oauth import GoogleOAuth
from auth.service import AuthService
from auth.sessions import SessionStore, connect_redis
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import Settings, get_settings

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("nexusx.api")

Lifespan = Callable[[FastAPI], AbstractAsyncContextManager[None]]


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


def build_auth_service(settings: Settings, users: UserStore, sessions: SessionStore) -> AuthService:
    """Wire the service from already-connected stores."""
    return AuthService(
        users=users,
        sessions=sessions,
        tokens=TokenCodec(settings.secret_key, settings.token_expire_seconds),
        password_min_length=settings.password_min_length,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage store clients across the full server lifetime.

    Startup order matters:
      1. User store -- ping before anything else; no DB, no service.
      2. Session cache -- ping; a token cannot be verified without it.
      3. AuthService + Google client -- depend on both stores.
    A failed ping raises InternalError out of the lifespan, so the server
    never listens.
    """
    settings: Settings = app.state.settings
    logger.info("NexusX auth service starting up")

    users = UserStore(settings.database_url_resolved, create_schema=False)
    try:
        users.ping()
        users.init_schema()
    except Exception as exc:
        logger.exception("Database connection failed")
        users.close()
        raise InternalError("Database connection failed") from exc
    logger.info("Database connected")

    sessions = SessionStore(connect_redis(settings.redis_url_resolved), ttl=settings.session_ttl_seconds)
    try:
        sessions.ping()
    except Exception as exc:
        logger.exception("Redis connection failed")
        users.close()
        sessions.close()
        raise InternalError("Redis connection failed") from exc
    logger.info("Redis connected")

    app.state.user_store = users
    app.state.session_store = sessions
    app.state.auth_service = build_auth_service(settings, users, sessions)
    app.state.google = GoogleOAuth.from_settings(settings)
    logger.info("Auth initialized (google_enabled=%s)", app.state.google.is_configured)

    yield

    sessions.close()
    users.close()
    logger.info("NexusX auth service shutdown complete")


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every failure leaves the service as {"success": false, "error": message}
# so clients parse errors uniformly.
# ---------------------------------------------------------------------------


def _error(status_code: int, error: str, message: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message).model_dump(exclude_none=True),
    )


async def auth_error_handler(request: Request, exc: AuthServiceError) -> JSONResponse:
    """Render the service's own failures with their status code."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.message)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a client exceeds the credential or general limit.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    client = request.client.host if request.client else "unknown"
    logger.warning("Rate limit exceeded on %s from %s", request.url.path, client)
    limit = getattr(exc, "limit", None)
    if limit is not None and limit.scope != AUTH_LIMIT_SCOPE:
        err = RateLimited("Too many requests, please try again later")
    else:
        err = RateLimited("Too many authentication attempts, please try again later")
    response = _error(err.status_code, err.message)
    # exc.limit.limit is the limits.RateLimitItem; its expiry is the window length.
    retry_after = limit.limit.get_expiry() if limit is not None else 900
    response.headers["Retry-After"] = str(retry_after)
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are client errors -- 400, same envelope as service validation."""
    first = exc.errors()[0] if exc.errors() else {}
    loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {loc} {first.get('msg', '')}".strip() if loc else "Invalid request body"
    return _error(400, message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing-level errors (unknown path, wrong method)."""
    if exc.status_code == 404:
        return _error(404, "Route not found")
    return _error(exc.status_code, str(exc.detail))


def make_generic_exception_handler(debug: bool):
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected server errors.

        The raw exception is logged, never returned -- except in debug mode,
        where its text rides along as "message".
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error", str(exc) if debug else None)

    return generic_exception_handler


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(settings: Settings | None = None, app_lifespan: Lifespan | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings:     Defaults to get_settings().
        app_lifespan: Defaults to lifespan(); tests pass one that wires
                      in-memory stores into app.state instead.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="NexusX Auth API",
        description="Email/password and Google authentication with revocable sessions.",
        version=VERSION,
        lifespan=app_lifespan or lifespan,
    )
    app.state.settings = settings

    # Middleware: register in the order a request should meet them.
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )
    app.add_middleware(SlowAPIASGIMiddleware)

    # One limiter per app, built from this app's settings. The middleware
    # finds it on app.state.limiter.
    limiter = build_limiter(settings)
    app.state.limiter = limiter

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

    app.include_router(build_router(limiter, settings.auth_rate_limit), prefix="/auth", tags=["Auth"])

    app.add_exception_handler(AuthServiceError, auth_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, make_generic_exception_handler(settings.debug))

    # Health is defined on the app (not a router) and is never rate limited.
    @app.get("/health", tags=["Health"])
    async def health() -> HealthResponse:
        """Liveness check."""
        return HealthResponse(timestamp=datetime.now(timezone.utc).isoformat())

    limiter.exempt(health)

    return app
