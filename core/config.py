"""
core/config.py -- Environment-driven settings for the NexusX auth service.

Every environment variable the service reads is a field on Settings. Other
modules take a Settings instance (create_app, the lifespan, main.py) or call
get_settings(); none of them read os.environ themselves.

How values arrive:
  pydantic-settings maps each field to the upper-cased env var of the same
      name (session_ttl_seconds -> SESSION_TTL_SECONDS) and also reads a .env
      file from the working directory. Unknown variables are ignored.

  Token and session lifetimes accept plain seconds or a short duration
      ("30m", "24h", "7d"); parse_duration() normalizes both to seconds.

  get_settings() is cached, so the environment is read once per process.

Security notes:
  [M6] SECRET_KEY must be at least 32 characters; it is the HS256 signing
       key for every bearer token.

  [M7] Without DEBUG=true a missing SECRET_KEY stops startup. With DEBUG a
       throwaway key is generated, and tokens die with the process.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import re
import secrets
from functools import lru_cache
from urllib.parse import quote

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("nexusx.config")

# "90", "90s", "30m", "24h", "7d"
_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str | int) -> int:
    """Convert a duration ("3600", "30m", "24h", "7d") to whole seconds.

    Raises ValueError for anything that is not a positive duration.
    """
    if isinstance(value, int):
        seconds = value
    else:
        match = _DURATION_RE.match(value)
        if match is None:
            raise ValueError(f"Invalid duration: {value!r}")
        seconds = int(match.group(1)) * _DURATION_UNITS[match.group(2).lower()]
    if seconds <= 0:
        raise ValueError("Duration must be positive.")
    return seconds


class Settings(BaseSettings):
    """Service configuration.

    Defaults describe a local development stack (Postgres and Redis on
    localhost, the Vite frontend on :5173). Tests construct Settings(...)
    directly with explicit values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    host: str = "0.0.0.0"  # noqa: S104 -- container default
    port: int = 5000
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Tokens and sessions
    # ------------------------------------------------------------------

    token_expire_seconds: int = 86400
    session_ttl_seconds: int = 86400
    password_min_length: int = 6

    # ------------------------------------------------------------------
    # Relational store
    # ------------------------------------------------------------------

    # When set, database_url wins over the individual DB_* parts.
    database_url: str = ""
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "nexusx_exchange"
    db_user: str = "postgres"
    db_password: str = "postgres"

    # ------------------------------------------------------------------
    # Session cache
    # ------------------------------------------------------------------

    redis_url: str = ""
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""

    # ------------------------------------------------------------------
    # Google OAuth (optional -- empty string means the provider is disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_client_secret: str = ""
    google_callback_url: str = "http://localhost:5000/auth/google/callback"

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    frontend_url: str = "http://localhost:5173"
    # Comma-separated extra origins, added to frontend_url.
    cors_origins: str = "http://localhost:3000,http://localhost:5173"
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    # Per client address. The general limit covers every route except /health
    # and the credential endpoints, which carry the stricter auth limit.
    general_rate_limit: str = "100 per 15 minutes"
    auth_rate_limit: str = "5 per 15 minutes"
    rate_limit_storage_uri: str = "memory://"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("token_expire_seconds", "session_ttl_seconds", mode="before")
    @classmethod
    def parse_durations(cls, value):
        """Accept "24h"-style strings as well as plain seconds."""
        return parse_duration(value)

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Fill in or reject SECRET_KEY [M6] [M7]."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def database_url_resolved(self) -> str:
        """SQLAlchemy URL for the user store (psycopg 3 driver unless overridden)."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg://{quote(self.db_user, safe='')}:{quote(self.db_password, safe='')}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @property
    def redis_url_resolved(self) -> str:
        if self.redis_url:
            return self.redis_url
        auth = f":{quote(self.redis_password, safe='')}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/0"

    @property
    def cors_origin_list(self) -> list[str]:
        """frontend_url first, then the extra origins, deduplicated."""
        origins: list[str] = []
        for origin in [self.frontend_url, *self.cors_origins.split(",")]:
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)
        return origins


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first call.

    get_settings.cache_clear() forces a re-read of the environment.
    """
    return Settings()
