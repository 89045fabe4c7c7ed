# OAuth2 code, refresh token and consent storage.
# Created: 2026-09-28
#
# Every compound read-check-write operation runs inside one critical section,
# so two requests racing on the same code or refresh token cannot both win.
# Auth codes stay in memory (60 s lifetime). Refresh tokens and consents are
# optionally persisted to a JSON file so they survive restarts.

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Protocol

from pocketauth.oauth2.errors import StoreError
from pocketauth.oauth2.models import AuthorizationCode, Consent, RefreshToken

logger = logging.getLogger(__name__)


class OAuthStore(Protocol):
    """Keyed store for codes, refresh tokens and consents.

    Implementations must make ``redeem_code``, ``rotate_refresh_token``,
    ``mark_refresh_token_revoked``, ``revoke_refresh_token`` and
    ``find_or_create_consent`` atomic per key (a transaction, conditional
    delete, or lock). A write that fails to persist raises StoreError and
    leaves no partial change behind.
    """

    def save_code(self, code: AuthorizationCode) -> None: ...

    def redeem_code(
        self, code: str, check: Callable[[AuthorizationCode], bool]
    ) -> AuthorizationCode | None:
        """Delete and return the code iff it exists and *check* accepts it."""
        ...

    def save_refresh_token(self, token: RefreshToken) -> None: ...

    def get_refresh_token(self, token_hash: str) -> RefreshToken | None: ...

    def rotate_refresh_token(
        self,
        token_hash: str,
        check: Callable[[RefreshToken], bool],
        replacement: Callable[[RefreshToken], RefreshToken],
    ) -> RefreshToken | None:
        """Swap the record for ``replacement(old)`` iff *check* accepts it.

        Returns the new record, or None when nothing was rotated.
        """
        ...

    def mark_refresh_token_revoked(self, token_hash: str, when: datetime) -> RefreshToken | None:
        """Set ``revoked_at`` iff the record exists and is not revoked yet."""
        ...

    def revoke_refresh_token(self, token_hash: str, when: datetime) -> RefreshToken | None:
        """Mark the token revoked and drop its (owner, client) consent together.

        Either both changes land or neither does. Returns the token, or None
        when it is unknown or already revoked.
        """
        ...

    def get_consent(self, owner_id: str, client_id: str) -> Consent | None: ...

    def find_or_create_consent(self, consent: Consent) -> Consent: ...

    def delete_consent(self, owner_id: str, client_id: str) -> bool: ...

    def purge_expired_codes(self, now: datetime) -> int: ...

    def cleanup_expired(self, now: datetime) -> int: ...


class InMemoryOAuthStore:
    """Lock-guarded in-memory store with optional JSON persistence."""

    def __init__(self, persist_path: Path | None = None):
        self._codes: dict[str, AuthorizationCode] = {}
        self._refresh_tokens: dict[str, RefreshToken] = {}  # keyed by token_hash
        self._consents: dict[tuple[str, str], Consent] = {}
        self._persist_path = persist_path
        self._lock = threading.RLock()
        self._load()

    # -- persistence -------------------------------------------------------

    def _load(self) -> None:
        """Load refresh tokens and consents from disk on startup."""
        path = self._persist_path
        if path is None or not path.exists():
            return
        try:
            data = json.loads(path.read_text())
            for entry in data.get("refresh_tokens", []):
                token = RefreshToken.from_dict(entry)
                self._refresh_tokens[token.token_hash] = token
            for entry in data.get("consents", []):
                consent = Consent(
                    owner_id=entry["owner_id"],
                    client_id=entry["client_id"],
                    scope=entry.get("scope", ""),
                )
                self._consents[(consent.owner_id, consent.client_id)] = consent
            logger.debug(
                "Loaded %d refresh tokens and %d consents from %s",
                len(self._refresh_tokens),
                len(self._consents),
                path,
            )
        except (json.JSONDecodeError, OSError, KeyError, ValueError) as exc:
            logger.warning("Failed to load OAuth store from %s: %s", path, exc)

    def _save(self) -> None:
        """Persist refresh tokens and consents. Caller holds the lock."""
        path = self._persist_path
        if path is None:
            return
        data = {
            "refresh_tokens": [t.to_dict() for t in self._refresh_tokens.values()],
            "consents": [
                {"owner_id": c.owner_id, "client_id": c.client_id, "scope": c.scope}
                for c in self._consents.values()
            ],
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, indent=2))
            try:
                tmp.chmod(0o600)
            except OSError:
                pass
            tmp.replace(path)
        except OSError as exc:
            raise StoreError(f"failed to persist OAuth store to {path}") from exc

    def _commit(self, undo: Callable[[], None]) -> None:
        """Persist, or run *undo* and re-raise so memory never drifts from disk."""
        try:
            self._save()
        except StoreError:
            undo()
            raise

    # -- authorization codes ----------------------------------------------

    def save_code(self, code: AuthorizationCode) -> None:
        with self._lock:
            self._codes[code.code] = code

    def redeem_code(
        self, code: str, check: Callable[[AuthorizationCode], bool]
    ) -> AuthorizationCode | None:
        with self._lock:
            record = self._codes.get(code)
            if record is None or not check(record):
                return None
            del self._codes[code]
            return record

    def purge_expired_codes(self, now: datetime) -> int:
        """Drop expired codes. Memory only, codes are never persisted."""
        with self._lock:
            expired = [k for k, v in self._codes.items() if v.is_expired(now)]
            for k in expired:
                del self._codes[k]
            return len(expired)

    # -- refresh tokens ----------------------------------------------------

    def save_refresh_token(self, token: RefreshToken) -> None:
        with self._lock:
            previous = self._refresh_tokens.get(token.token_hash)
            self._refresh_tokens[token.token_hash] = token

            def undo() -> None:
                if previous is None:
                    del self._refresh_tokens[token.token_hash]
                else:
                    self._refresh_tokens[token.token_hash] = previous

            self._commit(undo)

    def get_refresh_token(self, token_hash: str) -> RefreshToken | None:
        with self._lock:
            return self._refresh_tokens.get(token_hash)

    def rotate_refresh_token(
        self,
        token_hash: str,
        check: Callable[[RefreshToken], bool],
        replacement: Callable[[RefreshToken], RefreshToken],
    ) -> RefreshToken | None:
        with self._lock:
            old = self._refresh_tokens.get(token_hash)
            if old is None or not check(old):
                return None
            new = replacement(old)
            del self._refresh_tokens[token_hash]
            self._refresh_tokens[new.token_hash] = new

            def undo() -> None:
                del self._refresh_tokens[new.token_hash]
                self._refresh_tokens[token_hash] = old

            self._commit(undo)
            return new

    def mark_refresh_token_revoked(self, token_hash: str, when: datetime) -> RefreshToken | None:
        with self._lock:
            token = self._refresh_tokens.get(token_hash)
            if token is None or token.revoked_at is not None:
                return None
            token.revoked_at = when

            def undo() -> None:
                token.revoked_at = None

            self._commit(undo)
            return token

    def revoke_refresh_token(self, token_hash: str, when: datetime) -> RefreshToken | None:
        with self._lock:
            token = self._refresh_tokens.get(token_hash)
            if token is None or token.revoked_at is not None:
                return None
            key = (token.owner_id, token.client_id)
            consent = self._consents.pop(key, None)
            token.revoked_at = when

            def undo() -> None:
                token.revoked_at = None
                if consent is not None:
                    self._consents[key] = consent

            self._commit(undo)
            return token

    # -- consents ----------------------------------------------------------

    def get_consent(self, owner_id: str, client_id: str) -> Consent | None:
        with self._lock:
            return self._consents.get((owner_id, client_id))

    def find_or_create_consent(self, consent: Consent) -> Consent:
        key = (consent.owner_id, consent.client_id)
        with self._lock:
            existing = self._consents.get(key)
            if existing is not None:
                return existing
            self._consents[key] = consent
            self._commit(lambda: self._consents.pop(key, None))
            return consent

    def delete_consent(self, owner_id: str, client_id: str) -> bool:
        key = (owner_id, client_id)
        with self._lock:
            removed = self._consents.pop(key, None)
            if removed is None:
                return False
            self._commit(lambda: self._consents.__setitem__(key, removed))
            return True

    # -- housekeeping ------------------------------------------------------

    def cleanup_expired(self, now: datetime) -> int:
        """Remove expired codes and expired refresh tokens. Returns count removed."""
        with self._lock:
            removed_codes = self.purge_expired_codes(now)

            expired = {k: v for k, v in self._refresh_tokens.items() if v.is_expired(now)}
            for k in expired:
                del self._refresh_tokens[k]

            if expired:
                self._commit(lambda: self._refresh_tokens.update(expired))
            return removed_codes + len(expired)
