# Refresh token revocation with consent withdrawal.
# Created: 2026-09-30

from __future__ import annotations

import logging

from pocketauth.oauth2.clock import Clock, SystemClock
from pocketauth.oauth2.storage import OAuthStore
from pocketauth.oauth2.tokens import hash_refresh_token

logger = logging.getLogger(__name__)


class RevocationService:
    """Revokes refresh tokens and withdraws the matching consent.

    ``revoke`` returns nothing: callers answer success whether or not the
    token existed. The revocation mark and the consent deletion are one
    store operation, so a failed write can simply be retried.
    """

    def __init__(self, store: OAuthStore, clock: Clock | None = None):
        self._store = store
        self._clock = clock or SystemClock()

    def revoke(self, raw_token: str | None) -> None:
        if not raw_token:
            return

        token = self._store.revoke_refresh_token(hash_refresh_token(raw_token), self._clock.now())
        if token is None:
            logger.debug("Revocation of unknown or already revoked token ignored")
            return

        logger.info("Consent withdrawn for owner %s / client %s", token.owner_id, token.client_id)

        try:
            from pocketauth.security.audit import get_audit_logger

            get_audit_logger().log_api_event(
                action="token_revoked",
                target=f"client:{token.client_id}",
                owner=token.owner_id,
            )
        except Exception:
            logger.debug("Audit write skipped", exc_info=True)
