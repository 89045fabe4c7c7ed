# Access and refresh token minting.
# Created: 2026-09-30
#
# Access tokens are signed, time-boxed assertions (no server-side state).
# Refresh tokens are opaque random strings; only their SHA-256 is stored.

from __future__ import annotations

import hashlib
from datetime import timedelta

from pocketauth.oauth2.clock import Clock, RandomSource, SecureRandom, SystemClock
from pocketauth.security.signed_tokens import create_signed_token, verify_signed_token

ACCESS_TOKEN_TYPE = "access"
ACCESS_TOKEN_TTL = timedelta(hours=1)
REFRESH_TOKEN_TTL = timedelta(days=7)
REFRESH_TOKEN_BYTES = 32
REFRESH_TOKEN_PREFIX = "part_"


def hash_refresh_token(raw: str) -> str:
    return hashlib.sha256(raw.encode()).hexdigest()


class AccessTokenSigner:
    def __init__(
        self,
        signing_key: str,
        ttl: timedelta = ACCESS_TOKEN_TTL,
        clock: Clock | None = None,
    ):
        if not signing_key:
            raise ValueError("access token signing key must not be empty")
        self._key = signing_key
        self._ttl = ttl
        self._clock = clock or SystemClock()

    @property
    def expires_in(self) -> int:
        return int(self._ttl.total_seconds())

    def issue(self, owner_id: str, client_id: str, scope: str) -> str:
        return create_signed_token(
            self._key,
            {"sub": owner_id, "client_id": client_id, "scope": scope},
            token_type=ACCESS_TOKEN_TYPE,
            ttl_seconds=self.expires_in,
            now=self._clock.now(),
        )

    def verify(self, token: str) -> dict | None:
        """Return the token claims, or None if invalid or expired."""
        if not token:
            return None
        return verify_signed_token(
            token, self._key, token_type=ACCESS_TOKEN_TYPE, now=self._clock.now()
        )


def new_refresh_token(random: RandomSource | None = None) -> str:
    random = random or SecureRandom()
    return f"{REFRESH_TOKEN_PREFIX}{random.token_hex(REFRESH_TOKEN_BYTES)}"
