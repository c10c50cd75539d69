"""
auth/service.py -- Authentication orchestration.

AuthService coordinates the user store, password hashing, the token codec and
the session cache to implement register / login / Google login / logout /
token verification / profile fetch. It raises the auth.errors taxonomy and
never builds HTTP responses.

Every successful authentication goes through _issue(): mint a session id,
write the session entry with the configured TTL, sign a token that embeds the
session id. One token <-> one session entry; a user may hold many.

Security:
  [C1] login() always runs bcrypt -- against DUMMY_HASH when there is no
       usable password hash -- so response time does not reveal whether the
       email is registered. Unknown email, Google-only account and wrong
       password all raise the same AuthError message.

Layer rule: no imports from api/ or core/. Collaborators are injected.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy.exc import IntegrityError

from auth.errors import AuthError, ConflictError, InternalError, NotFoundError, ValidationError
from auth.models import AuthResult, SessionIdentity, User
from auth.oauth import GoogleProfile
from auth.sessions import SessionStore
from auth.store import UserStore, normalize_email
from auth.tokens import DUMMY_HASH, TokenCodec, hash_password, verify_password

logger = logging.getLogger("nexusx.auth")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

BAD_CREDENTIALS = "Invalid email or password"


class AuthService:
    """Usage:
    service = AuthService(UserStore(url), SessionStore(client, ttl), TokenCodec(secret, expiry))
    result = service.register("a@b.com", "secret123", "A")
    identity = service.verify_token(result.access_token)
    service.logout(identity.session_id)
    """

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        tokens: TokenCodec,
        password_min_length: int = 6,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.tokens = tokens
        self.password_min_length = password_min_length

    # ------------------------------------------------------------------
    # Credential flows
    # ------------------------------------------------------------------

    def register(
        self,
        email: str | None,
        password: str | None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> AuthResult:
        """Create an email/password account and sign the user in."""
        if not email or not password:
            raise ValidationError("Email and password are required")
        email = normalize_email(email)
        if not EMAIL_RE.match(email):
            raise ValidationError("Invalid email format")
        if len(password) < self.password_min_length:
            raise ValidationError(f"Password must be at least {self.password_min_length} characters")

        if self.users.exists_by_email(email):
            raise ConflictError("Email already registered")

        try:
            user_id = self.users.create_user(
                User(
                    email=email,
                    password_hash=hash_password(password),
                    first_name=first_name or None,
                    last_name=last_name or None,
                    auth_method="email",
                )
            )
        except IntegrityError as exc:
            # A concurrent registration for the same email won the race.
            raise ConflictError("Email already registered") from exc

        logger.info("Registered user %s", user_id)
        return self._issue(self._require_user(user_id))

    def login(self, email: str | None, password: str | None) -> AuthResult:
        """Authenticate with email and password [C1]."""
        if not email or not password:
            raise ValidationError("Email and password are required")

        user = self.users.get_by_email(email)
        if user is None or user.password_hash is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            verify_password(password, DUMMY_HASH)
            logger.warning("Failed login: no password account for submitted email")
            raise AuthError(BAD_CREDENTIALS)
        if not verify_password(password, user.password_hash):
            logger.warning("Failed login: wrong password for user %s", user.id)
            raise AuthError(BAD_CREDENTIALS)

        return self._issue(user)

    def google_login(self, profile: GoogleProfile) -> AuthResult:
        """Sign in with a verified Google profile, linking or creating the account.

        Resolution order:
          1. google_id already linked -- returning user.
          2. email matches an existing account -- link the google_id to it.
          3. nothing matches -- create a Google-only account.
        """
        if not profile.email:
            raise AuthError("Email not provided by Google")

        user = self.users.get_by_google_id(profile.id)
        try:
            if user is None:
                user = self.users.get_by_email(profile.email)
                if user is not None:
                    self.users.link_google(user.id, profile.id, profile.picture)
                    logger.info("Linked Google identity to user %s", user.id)
                    user = self._require_user(user.id)
                else:
                    first_name, last_name = profile.split_name()
                    user_id = self.users.create_user(
                        User(
                            email=profile.email,
                            google_id=profile.id,
                            first_name=first_name,
                            last_name=last_name,
                            auth_method="google",
                            profile_picture_url=profile.picture,
                        )
                    )
                    logger.info("Registered Google user %s", user_id)
                    user = self._require_user(user_id)
        except IntegrityError as exc:
            # Email held by a deactivated account, or a concurrent link/create.
            logger.warning("Google login conflict for provider id %s", profile.id)
            raise AuthError("Failed to authenticate with Google") from exc

        return self._issue(user)

    # ------------------------------------------------------------------
    # Session flows
    # ------------------------------------------------------------------

    def verify_token(self, token: str | None) -> SessionIdentity:
        """Return the identity behind a bearer token with a live session.

        Signature validity is not enough: the embedded session id must still
        have an entry in the session cache, owned by the same user. The
        lookup is read-only.
        """
        if not token:
            raise AuthError("Missing authorization token")
        claims = self.tokens.verify(token)
        if claims is None:
            raise AuthError("Invalid token")

        owner = self.sessions.get_user_id(claims["session_id"])
        if owner is None or owner != claims["user_id"]:
            raise AuthError("Session expired or invalid")
        return SessionIdentity(user_id=claims["user_id"], email=claims["email"], session_id=claims["session_id"])

    def logout(self, session_id: str) -> None:
        """Delete the session entry. Idempotent."""
        self.sessions.delete(session_id)
        logger.info("Session %s logged out", session_id)

    def get_profile(self, user_id: str) -> User:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue(self, user: User) -> AuthResult:
        session_id = self.sessions.create(user.id)
        token = self.tokens.issue(user.id, user.email, session_id)
        self.users.update_last_login(user.id)
        return AuthResult(access_token=token, user=user)

    def _require_user(self, user_id: str) -> User:
        user = self.users.get_by_id(user_id)
        if user is None:
            # Written a moment ago; absence means the store is misbehaving.
            raise InternalError("Failed to load user after write")
        return user
