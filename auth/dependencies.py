"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The bearer token travels in the Authorization header:

    Authorization: Bearer <token>

get_current_session() verifies it through AuthService.verify_token() --
signature, expiry, and a live session entry -- and raises AuthError on any
failure. The HTTP exception handler turns that into a 401 envelope.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.models import SessionIdentity
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    """Return the AuthService built by the application lifespan."""
    return request.app.state.auth_service


def bearer_token(request: Request) -> str | None:
    """Extract the raw token from 'Authorization: Bearer <token>', or None."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_session(
    request: Request,
    service: AuthService = Depends(get_auth_service),
) -> SessionIdentity:
    """Require a valid bearer token with a live session.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: SessionIdentity = Depends(get_current_session)): ...
    """
    identity = service.verify_token(bearer_token(request))
    request.state.identity = identity
    return identity
