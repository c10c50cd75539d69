"""
API request and response models for the auth service REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire names follow the web client: request bodies use camelCase for the name
fields (firstName, lastName) and responses carry accessToken. Aliases keep
the Python attribute names snake_case.

Input validation (email format, password length) is deliberately NOT done
here -- AuthService owns those rules so they produce the service's 400
messages. Only hard size caps live on the models.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = Field(default=None, max_length=255)
    # bcrypt truncates at 72 bytes; 255 keeps inputs bounded.
    password: Optional[str] = Field(default=None, max_length=255)
    first_name: Optional[str] = Field(default=None, max_length=100, alias="firstName")
    last_name: Optional[str] = Field(default=None, max_length=100, alias="lastName")


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserView(BaseModel):
    """Redacted user returned with a freshly issued token."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_picture_url: Optional[str] = None
    auth_method: str

    @classmethod
    def from_user(cls, user: User) -> "UserView":
        return cls(**user.public_view())


class ProfileView(UserView):
    """Full profile for GET /auth/me -- everything except the password hash."""

    google_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_login: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_user(cls, user: User) -> "ProfileView":
        return cls(
            **user.public_view(),
            google_id=user.google_id,
            created_at=user.created_at,
            updated_at=user.updated_at,
            last_login=user.last_login,
            is_active=user.is_active,
        )


class AuthResponse(BaseModel):
    """Response for POST /auth/register and POST /auth/login."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool = True
    message: str
    access_token: str = Field(alias="accessToken")
    user: UserView


class MeResponse(BaseModel):
    """Response for GET /auth/me."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    user: ProfileView


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Uniform failure envelope returned on every 4xx/5xx response.

    message carries the underlying exception text on 500s in debug mode only.
    """

    model_config = ConfigDict(frozen=True)

    success: bool = False
    error: str
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    timestamp: str
