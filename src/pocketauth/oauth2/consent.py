# Consent records per (owner, client).
# Created: 2026-09-29

from __future__ import annotations

import logging

from pocketauth.oauth2.models import Consent
from pocketauth.oauth2.storage import OAuthStore

logger = logging.getLogger(__name__)


class ConsentManager:
    """Remembers which clients an owner has approved.

    A stored consent lets later authorize requests from the same owner and
    client skip the prompt.
    """

    def __init__(self, store: OAuthStore):
        self._store = store

    def has_consent(self, owner_id: str, client_id: str) -> bool:
        return self._store.get_consent(owner_id, client_id) is not None

    def record_consent(self, owner_id: str, client_id: str, scope: str) -> Consent:
        """Find-or-create; the first recorded scope is kept."""
        consent = self._store.find_or_create_consent(
            Consent(owner_id=owner_id, client_id=client_id, scope=scope)
        )
        logger.debug("Consent on file for owner %s / client %s", owner_id, client_id)
        return consent

    def revoke_consent(self, owner_id: str, client_id: str) -> bool:
        removed = self._store.delete_consent(owner_id, client_id)
        if removed:
            logger.info("Consent withdrawn for owner %s / client %s", owner_id, client_id)
        return removed
