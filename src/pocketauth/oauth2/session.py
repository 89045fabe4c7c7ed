# Session credential verification.
# Created: 2026-09-29

from __future__ import annotations

import logging

from pocketauth.oauth2.clock import Clock, SystemClock
from pocketauth.oauth2.models import SessionIdentity
from pocketauth.security.signed_tokens import create_signed_token, verify_signed_token

logger = logging.getLogger(__name__)

SESSION_TOKEN_TYPE = "session"


class SessionAuthenticator:
    """Turns a session credential into an optional owner identity.

    An absent or invalid credential is not an error: ``authenticate``
    returns None and the caller decides whether to send the user to login.
    """

    def __init__(self, signing_key: str, ttl_seconds: int = 3600, clock: Clock | None = None):
        if not signing_key:
            raise ValueError("session signing key must not be empty")
        self._key = signing_key
        self._ttl = ttl_seconds
        self._clock = clock or SystemClock()

    def issue(self, owner_id: str, email: str) -> str:
        """Mint a session credential for the login step."""
        return create_signed_token(
            self._key,
            {"sub": owner_id, "email": email},
            token_type=SESSION_TOKEN_TYPE,
            ttl_seconds=self._ttl,
            now=self._clock.now(),
        )

    def authenticate(self, credential: str | None) -> SessionIdentity | None:
        if not credential:
            return None
        claims = verify_signed_token(
            credential, self._key, token_type=SESSION_TOKEN_TYPE, now=self._clock.now()
        )
        if claims is None:
            logger.debug("Rejected session credential")
            return None

        owner_id = claims.get("sub")
        email = claims.get("email")
        if not isinstance(owner_id, str) or not isinstance(email, str):
            return None
        return SessionIdentity(owner_id=owner_id, email=email)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl
