# Authorization code issuance.
# Created: 2026-09-29

from __future__ import annotations

import logging
from datetime import timedelta

from pocketauth.oauth2.clock import Clock, RandomSource, SecureRandom, SystemClock
from pocketauth.oauth2.models import AuthorizationCode
from pocketauth.oauth2.storage import OAuthStore

logger = logging.getLogger(__name__)

CODE_TTL = timedelta(seconds=60)
CODE_BYTES = 32  # 256 bits of entropy


class AuthorizationCodeIssuer:
    """Mints one-time codes and persists them before handing them out."""

    def __init__(
        self,
        store: OAuthStore,
        clock: Clock | None = None,
        random: RandomSource | None = None,
        ttl: timedelta = CODE_TTL,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._random = random or SecureRandom()
        self._ttl = ttl

    def issue(
        self,
        owner_id: str,
        client_id: str,
        redirect_uri: str,
        scope: str,
        code_challenge: str,
    ) -> AuthorizationCode:
        now = self._clock.now()
        # Abandoned flows never redeem their code
        self._store.purge_expired_codes(now)

        auth_code = AuthorizationCode(
            code=self._random.token_urlsafe(CODE_BYTES),
            owner_id=owner_id,
            client_id=client_id,
            redirect_uri=redirect_uri,
            scope=scope,
            code_challenge=code_challenge,
            expires_at=now + self._ttl,
        )
        self._store.save_code(auth_code)

        try:
            from pocketauth.security.audit import get_audit_logger

            get_audit_logger().log_api_event(
                action="code_issued",
                target=f"client:{client_id}",
                owner=owner_id,
                scope=scope,
            )
        except Exception:
            logger.debug("Audit write skipped", exc_info=True)

        return auth_code
