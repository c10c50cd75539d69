"""
auth/oauth.py -- Google OAuth 2.0 / OpenID Connect code exchange.

The provider integration is an explicit two-step API rather than framework
middleware:

  authorization_url(state)  -- where to send the browser for consent.
  exchange_code(code)       -- trade the callback's authorization code for a
                               token, fetch the userinfo document, and return
                               an ExchangeResult (profile or error). Provider
                               and network failures never raise.

State handling (CSRF protection) lives with the caller: the route stores the
state in the session cache before redirecting and consumes it on callback.

Security notes:
  [H1] Email verification is mandatory. An email the provider reports as
       unverified could be a victim's address; linking it to an existing
       account by email would hand that account to an attacker. Such a
       profile is returned as an error result.

Layer rule: no imports from api/. Stdlib + third-party only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from authlib.integrations.httpx_client import AsyncOAuth2Client, OAuthError
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri

logger = logging.getLogger("nexusx.auth.oauth")

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 -- URL, not a password
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
GOOGLE_SCOPE = "openid email profile"


@dataclass(frozen=True)
class GoogleProfile:
    """The subset of Google's userinfo document the service uses."""

    id: str
    email: str | None = None
    display_name: str = ""
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None

    def split_name(self) -> tuple[str | None, str | None]:
        """(first, last) -- structured claims first, else the display name split once."""
        if self.given_name or self.family_name:
            return self.given_name, self.family_name
        parts = self.display_name.strip().split(" ", 1)
        first = parts[0] or None
        last = (parts[1].strip() or None) if len(parts) > 1 else None
        return first, last


@dataclass(frozen=True)
class ExchangeResult:
    """Either a profile or an error message, never both."""

    profile: GoogleProfile | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.profile is not None


def profile_from_userinfo(userinfo: dict) -> ExchangeResult:
    """Validate a userinfo document and map it onto GoogleProfile [H1]."""
    subject = userinfo.get("sub")
    if not subject:
        return ExchangeResult(error="google: userinfo has no sub claim")
    email = userinfo.get("email") or None
    if email and not userinfo.get("email_verified", False):
        return ExchangeResult(error="google: email is not verified")
    return ExchangeResult(
        profile=GoogleProfile(
            id=str(subject),
            email=email,
            display_name=userinfo.get("name") or "",
            given_name=userinfo.get("given_name") or None,
            family_name=userinfo.get("family_name") or None,
            picture=userinfo.get("picture") or None,
        )
    )


class GoogleOAuth:
    """Google authorization-code client.

    client_kwargs are forwarded to authlib's AsyncOAuth2Client (an
    httpx.AsyncClient subclass) -- tests pass transport=httpx.MockTransport.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        client_kwargs: dict | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._client_kwargs = client_kwargs or {}

    @classmethod
    def from_settings(cls, settings) -> GoogleOAuth:
        return cls(settings.google_client_id, settings.google_client_secret, settings.google_callback_url)

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorization_url(self, state: str) -> str:
        """Return the consent-screen URL for the given state value."""
        return prepare_grant_uri(
            GOOGLE_AUTHORIZE_URL,
            client_id=self.client_id,
            response_type="code",
            redirect_uri=self.redirect_uri,
            scope=GOOGLE_SCOPE,
            state=state,
            prompt="select_account",
        )

    async def exchange_code(self, code: str) -> ExchangeResult:
        """Exchange an authorization code for the caller's Google profile.

        Token-endpoint errors, HTTP failures and malformed responses all come
        back as ExchangeResult(error=...) and are logged here.
        """
        if not code:
            return ExchangeResult(error="google: missing authorization code")
        try:
            async with AsyncOAuth2Client(
                client_id=self.client_id,
                client_secret=self.client_secret,
                scope=GOOGLE_SCOPE,
                redirect_uri=self.redirect_uri,
                timeout=10.0,
                **self._client_kwargs,
            ) as client:
                await client.fetch_token(GOOGLE_TOKEN_URL, code=code)
                resp = await client.get(GOOGLE_USERINFO_URL)
                resp.raise_for_status()
                userinfo = resp.json()
        except (OAuthError, httpx.HTTPError, ValueError) as exc:
            logger.warning("Google code exchange failed: %s", exc)
            return ExchangeResult(error=f"google: code exchange failed ({type(exc).__name__})")

        if not isinstance(userinfo, dict):
            return ExchangeResult(error="google: unexpected userinfo payload")
        result = profile_from_userinfo(userinfo)
        if not result.ok:
            logger.warning("Google profile rejected: %s", result.error)
        return result
