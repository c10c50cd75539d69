"""
auth/sessions.py -- Redis-backed session cache.

A session entry is the key session:<session_id> holding the owning user id,
written with SETEX so it expires together with the session TTL. Its presence
is the sole validity signal for a bearer token: logout deletes the key, and a
token whose key has expired or been deleted is rejected even though its
signature still verifies.

Reads are pure reads. Verifying a session never rewrites the entry and never
extends its TTL.

The same client also holds short-lived OAuth state values
(oauth_state:<state>) between the consent redirect and the callback. They are
consumed with a single DELETE so a state value can be redeemed exactly once.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import uuid

import redis

logger = logging.getLogger("nexusx.auth.sessions")

SESSION_PREFIX = "session:"
OAUTH_STATE_PREFIX = "oauth_state:"
OAUTH_STATE_TTL = 600  # 10 minutes


def connect_redis(url: str, socket_timeout: float = 5.0) -> redis.Redis:
    """Build a pooled redis-py client that returns str values."""
    return redis.Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
        health_check_interval=30,
    )


class SessionStore:
    """Session and OAuth-state storage over an injected redis.Redis client.

    Usage:
        sessions = SessionStore(connect_redis(settings.redis_url_resolved), ttl=86400)
        session_id = sessions.create(user_id)
        sessions.get_user_id(session_id)   # -> user_id or None
        sessions.delete(session_id)
    """

    def __init__(self, client: redis.Redis, ttl: int) -> None:
        self._client = client
        self.ttl = ttl

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create(self, user_id: str, ttl: int | None = None) -> str:
        """Mint a fresh session id, store it for user_id, and return it."""
        session_id = str(uuid.uuid4())
        self._client.setex(SESSION_PREFIX + session_id, ttl or self.ttl, user_id)
        return session_id

    def get_user_id(self, session_id: str) -> str | None:
        """Return the user id owning session_id, or None if absent/expired."""
        return self._client.get(SESSION_PREFIX + session_id)

    def delete(self, session_id: str) -> None:
        """Remove a session entry. Deleting an absent entry is not an error."""
        self._client.delete(SESSION_PREFIX + session_id)

    # ------------------------------------------------------------------
    # OAuth state
    # ------------------------------------------------------------------

    def put_oauth_state(self, state: str) -> None:
        self._client.setex(OAUTH_STATE_PREFIX + state, OAUTH_STATE_TTL, "1")

    def consume_oauth_state(self, state: str) -> bool:
        """Delete the state entry; True only if it existed (single use)."""
        if not state:
            return False
        return self._client.delete(OAUTH_STATE_PREFIX + state) == 1

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> None:
        """Raise redis.exceptions.ConnectionError if the server is unreachable."""
        self._client.ping()

    def close(self) -> None:
        self._client.close()
