"""
auth/tokens.py -- JWT signing/verification and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       user_id, email, session_id and expiry. Verification returns None on any
       failure -- the service turns that into AuthError ("Invalid token").
       A signature-valid token is still only half the check: the session_id it
       carries must have a live entry in the session cache (auth/sessions.py).

  Passwords: bcrypt directly (no passlib wrapper). Bcrypt is the right choice
       for low-entropy secrets because its cost factor makes brute-force
       expensive. DUMMY_HASH enables timing equalization in AuthService.login()
       so response time does not reveal whether an email is registered [C1].

  TokenCodec takes its secret and lifetime as constructor arguments rather
       than reading settings at import time; the application lifespan builds
       one from Settings and hands it to AuthService.

Layer rule: no imports from api/. Stdlib + third-party only.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

logger = logging.getLogger("nexusx.auth")

ALGORITHM = "HS256"

# Claims every accepted token must carry.
_REQUIRED_CLAIMS = ("user_id", "email", "session_id")

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
#
# passlib's internal wrap-bug detection creates a password longer than 72
# bytes, which bcrypt 4.x rejects with an explicit error. Direct bcrypt usage
# has no compatibility shim and is actively maintained.
# ---------------------------------------------------------------------------


# bcrypt only reads the first 72 bytes of a password, and bcrypt 5 raises
# ValueError for anything longer instead of truncating.
BCRYPT_MAX_BYTES = 72


def _password_bytes(plain: str) -> bytes:
    return plain.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    The UTF-8 encoding is cut to 72 bytes before hashing, which matches the
    silent truncation of older bcrypt releases. verify_password() cuts the
    same way, so long passwords hash and verify consistently.
    """
    return bcrypt.hashpw(_password_bytes(plain), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A corrupt or non-bcrypt stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(_password_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
DUMMY_HASH: str = hash_password("nexusx_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


class TokenCodec:
    """Signs and verifies bearer tokens.

    Usage:
        codec = TokenCodec(settings.secret_key, settings.token_expire_seconds)
        token = codec.issue(user_id, email, session_id)
        claims = codec.verify(token)   # dict or None
    """

    def __init__(self, secret_key: str, expire_seconds: int) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, user_id: str, email: str, session_id: str, expire_seconds: int = 0) -> str:
        """Encode a signed JWT embedding the user identity and session id.

        Args:
            user_id:        Opaque user id (also used as the subject claim).
            email:          The user's normalized email.
            session_id:     Per-login id; must match a live session entry.
            expire_seconds: Override for the configured lifetime. 0 = default.
        """
        duration = expire_seconds if expire_seconds > 0 else self.expire_seconds
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "user_id": user_id,
            "email": email,
            "session_id": session_id,
            "iat": now,
            "exp": now + timedelta(seconds=duration),
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def verify(self, token: str) -> dict | None:
        """Decode and verify a JWT. Returns the payload dict or None on any failure.

        Expired tokens, bad signatures, garbage input and tokens missing one
        of the identity claims all return None.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM])
        except JWTError:
            return None
        if any(not payload.get(claim) for claim in _REQUIRED_CLAIMS):
            logger.warning("Rejected signed token with missing identity claims")
            return None
        return payload
