"""
api/routes/auth.py -- Authentication REST endpoints.

Routes (mounted under /auth):
  POST /auth/register         -- email/password sign-up; 201 + token
  POST /auth/login            -- email/password login; 200 + token
  GET  /auth/google           -- redirect to Google consent
  GET  /auth/google/callback  -- code exchange; redirect to the frontend
  POST /auth/logout           -- revoke the caller's session (requires auth)
  GET  /auth/me               -- current user's profile (requires auth)

Security:
  [H2] register and login share one rate limit per client address
       (AUTH_RATE_LIMIT, default 5 per 15 minutes). build_router() applies
       it from the app's own limiter, before the body reaches AuthService.
  [C1] AuthService.login() provides timing equalization -- never inline
       get_by_email() + verify_password() here.
  [M5] Cache-Control: no-store on every response that carries a token.

No `from __future__ import annotations` here: slowapi wraps the rate-limited
handlers, and FastAPI resolves string annotations against the wrapper's
module globals, not this module's. Real annotation objects avoid that.

Failures are raised as auth.errors exceptions; api/main.py renders them.
The Google callback is the exception: it is a browser navigation, so every
failure becomes a redirect to FRONTEND_URL/login?error=google_auth_failed.
"""

import json
import logging
import secrets
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse
from slowapi import Limiter
from starlette.concurrency import run_in_threadpool

from api.limiter import AUTH_LIMIT_SCOPE
from api.models import AuthResponse, LoginRequest, MeResponse, MessageResponse, ProfileView, RegisterRequest, UserView
from auth.dependencies import get_auth_service, get_current_session
from auth.errors import AuthServiceError
from auth.models import AuthResult, SessionIdentity
from auth.oauth import GoogleOAuth
from auth.service import AuthService

logger = logging.getLogger("nexusx.api.auth")

# Auth policy:
# - POST /auth/register:         public, credential limit
# - POST /auth/login:            public, credential limit
# - GET  /auth/google:           public
# - GET  /auth/google/callback:  public (state checked against the session cache)
# - POST /auth/logout:           requires auth (get_current_session)
# - GET  /auth/me:               requires auth (get_current_session)
# Routes without the credential limit fall under the app-wide general limit.


def _auth_response(result: AuthResult, message: str, response: Response) -> AuthResponse:
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return AuthResponse(
        message=message,
        access_token=result.access_token,
        user=UserView.from_user(result.user),
    )


def _frontend_redirect(request: Request, path: str, params: dict) -> RedirectResponse:
    frontend = request.app.state.settings.frontend_url.rstrip("/")
    resp = RedirectResponse(f"{frontend}{path}?{urlencode(params)}", status_code=302)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _google_failure(request: Request) -> RedirectResponse:
    return _frontend_redirect(request, "/login", {"error": "google_auth_failed"})


# ---------------------------------------------------------------------------
# Email / password
# ---------------------------------------------------------------------------


def register(
    request: Request,
    response: Response,
    body: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Create an email/password account and return a token for it."""
    result = service.register(body.email, body.password, body.first_name, body.last_name)
    return _auth_response(result, "Registration successful", response)


def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Authenticate with email and password.

    Unknown email, Google-only account and wrong password all produce the
    same 401 message so the endpoint cannot be used to enumerate accounts.
    """
    result = service.login(body.email, body.password)
    return _auth_response(result, "Login successful", response)


# ---------------------------------------------------------------------------
# Google OAuth
# ---------------------------------------------------------------------------


def google_start(request: Request, service: AuthService = Depends(get_auth_service)) -> RedirectResponse:
    """Send the browser to Google's consent screen.

    A random state value is parked in the session cache for ten minutes;
    the callback must present it back exactly once.
    """
    google: GoogleOAuth = request.app.state.google
    if not google.is_configured:
        logger.warning("Google login requested but GOOGLE_CLIENT_ID/SECRET are not set")
        return _google_failure(request)

    state = secrets.token_urlsafe(32)
    service.sessions.put_oauth_state(state)
    return RedirectResponse(google.authorization_url(state), status_code=302)


async def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    """Finish the Google flow and hand the token to the frontend.

    Flow:
      1. Reject provider errors and unknown / replayed state values.
      2. Exchange the code for a verified profile (GoogleOAuth.exchange_code).
      3. Resolve, link or create the account (AuthService.google_login).
      4. Redirect to FRONTEND_URL/trade?token=...&user=<json>.
    """
    google: GoogleOAuth = request.app.state.google
    if error:
        logger.warning("Google returned an error on callback: %s", error)
        return _google_failure(request)
    if not google.is_configured:
        return _google_failure(request)

    # Step 1: state is single-use; a missing or replayed value fails here.
    if not state or not await run_in_threadpool(service.sessions.consume_oauth_state, state):
        logger.warning("Google callback with unknown or reused state")
        return _google_failure(request)

    # Step 2: explicit code exchange -- returns a result, never raises.
    exchange = await google.exchange_code(code or "")
    if not exchange.ok:
        return _google_failure(request)

    # Step 3: account resolution (sync store + cache calls, off the event loop)
    try:
        result = await run_in_threadpool(service.google_login, exchange.profile)
    except AuthServiceError as exc:
        logger.warning("Google login rejected: %s", exc.message)
        return _google_failure(request)

    # Step 4
    user_json = json.dumps(UserView.from_user(result.user).model_dump())
    return _frontend_redirect(request, "/trade", {"token": result.access_token, "user": user_json})


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


def logout(
    identity: SessionIdentity = Depends(get_current_session),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Delete the caller's session entry. The token is dead from here on."""
    service.logout(identity.session_id)
    return MessageResponse(message="Logout successful")


def me(
    identity: SessionIdentity = Depends(get_current_session),
    service: AuthService = Depends(get_auth_service),
) -> MeResponse:
    """Return the authenticated user's profile (no password hash)."""
    user = service.get_profile(identity.user_id)
    return MeResponse(user=ProfileView.from_user(user))


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


def build_router(limiter: Limiter, auth_limit: str) -> APIRouter:
    """Return the /auth router with the credential limit bound to `limiter`.

    The handlers above are plain functions; each app wraps them with its own
    limiter so limits and counters follow the Settings it was built from.
    FastAPI must register the wrapper itself, because the middleware skips
    routes that carry a decorator limit.
    """
    credentials_limit = limiter.shared_limit(auth_limit, scope=AUTH_LIMIT_SCOPE)  # [H2]

    router = APIRouter()
    router.add_api_route(
        "/register",
        credentials_limit(register),
        methods=["POST"],
        response_model=AuthResponse,
        status_code=201,
    )
    router.add_api_route("/login", credentials_limit(login), methods=["POST"], response_model=AuthResponse)
    router.add_api_route("/google", google_start, methods=["GET"])
    router.add_api_route("/google/callback", google_callback, methods=["GET"], name="google_callback")
    router.add_api_route("/logout", logout, methods=["POST"], response_model=MessageResponse)
    router.add_api_route("/me", me, methods=["GET"], response_model=MeResponse)
    return router
