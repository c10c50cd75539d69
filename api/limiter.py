"""
api/limiter.py -- slowapi rate limiter built from Settings.

create_app() calls build_limiter() once per application and publishes the
result on app.state.limiter, where SlowAPIASGIMiddleware looks for it. The
same instance is handed to api/routes/auth.py so the per-route limits count
in the same store. Two apps built from different Settings never share
counters or limits.

Two limits, both keyed by client network address:
  GENERAL_RATE_LIMIT -- application-wide, enforced by the middleware on every
                        route that has no limit of its own.
  AUTH_RATE_LIMIT    -- register and login together (AUTH_LIMIT_SCOPE).

RATE_LIMIT_STORAGE_URI points the counters at Redis (redis://...) when
several workers serve the app; memory:// keeps them per process.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import Settings

# Register and login share one counter per client address.
AUTH_LIMIT_SCOPE = "auth-credentials"


def build_limiter(settings: Settings) -> Limiter:
    return Limiter(
        key_func=get_remote_address,
        application_limits=[settings.general_rate_limit],
        storage_uri=settings.rate_limit_storage_uri,
    )
