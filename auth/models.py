"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond views). Stores and
the service do the work; api/models.py owns the HTTP shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A row of the users table.

    password_hash is None for Google-only users (they have no local password).
    google_id is None until the user logs in with Google for the first time,
    at which point link_google() fills it in. A record may carry both.

    email is always stored lower-cased; the store normalizes on write and on
    lookup so callers never have to.
    """

    email: str
    id: str | None = None
    password_hash: str | None = None  # None = Google-only user
    first_name: str | None = None
    last_name: str | None = None
    google_id: str | None = None  # Google's stable "sub" claim
    auth_method: str = "email"  # "email" or "google"
    profile_picture_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    last_login: str | None = None
    is_active: bool = True

    def public_view(self) -> dict:
        """Redacted view returned alongside a freshly issued token.

        The password hash never leaves the service.
        """
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "profile_picture_url": self.profile_picture_url,
            "auth_method": self.auth_method,
        }


@dataclass(frozen=True)
class SessionIdentity:
    """The identity carried by a verified bearer token with a live session."""

    user_id: str
    email: str
    session_id: str


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful register / login / Google login."""

    access_token: str
    user: User
