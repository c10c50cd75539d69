"""
auth/errors.py -- Failure taxonomy for the authentication service.

Every failure the service can report is one of these classes. The service
layer raises them; api/main.py owns the single exception handler that turns
them into the {"success": false, "error": message} envelope, so route
handlers never build error responses by hand.

Layer rule: stdlib only. No imports from api/ or core/.
"""

from __future__ import annotations


class AuthServiceError(Exception):
    """Base class. status_code and code are read by the HTTP exception handler."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AuthServiceError):
    """Malformed input: missing fields, bad email format, short password."""

    status_code = 400
    code = "validation_error"


class ConflictError(AuthServiceError):
    """Duplicate email on registration."""

    status_code = 400
    code = "conflict"


class AuthError(AuthServiceError):
    """Bad credentials, or an invalid / expired / revoked session."""

    status_code = 401
    code = "unauthorized"


class NotFoundError(AuthServiceError):
    status_code = 404
    code = "not_found"


class RateLimited(AuthServiceError):
    status_code = 429
    code = "rate_limited"


class InternalError(AuthServiceError):
    status_code = 500
    code = "internal_error"
