# Token endpoint state machine: code redemption and refresh rotation.
# Created: 2026-09-30
#
# Both grants validate and consume their secret in a single store call, so
# a code or refresh token can be spent at most once under concurrency.
# Every rejection is reported as invalid_grant; the precise reason only goes
# to the debug log and the audit log.

from __future__ import annotations

import logging
from datetime import timedelta

from pocketauth.oauth2.clock import Clock, RandomSource, SecureRandom, SystemClock
from pocketauth.oauth2.errors import OAuthErrorCode, RejectionReason
from pocketauth.oauth2.models import AuthorizationCode, RefreshToken
from pocketauth.oauth2.pkce import verify_code_verifier
from pocketauth.oauth2.storage import OAuthStore
from pocketauth.oauth2.tokens import (
    REFRESH_TOKEN_TTL,
    AccessTokenSigner,
    hash_refresh_token,
    new_refresh_token,
)
from pocketauth.security.audit import AuditSeverity

logger = logging.getLogger(__name__)

TokenResult = tuple[dict | None, OAuthErrorCode | None]


class TokenExchangeEngine:
    """Redeems authorization codes and rotates refresh tokens."""

    def __init__(
        self,
        store: OAuthStore,
        access_tokens: AccessTokenSigner,
        clock: Clock | None = None,
        random: RandomSource | None = None,
        refresh_ttl: timedelta = REFRESH_TOKEN_TTL,
    ):
        self._store = store
        self._access_tokens = access_tokens
        self._clock = clock or SystemClock()
        self._random = random or SecureRandom()
        self._refresh_ttl = refresh_ttl

    def exchange(
        self,
        grant_type: str | None,
        *,
        code: str | None = None,
        redirect_uri: str | None = None,
        client_id: str | None = None,
        code_verifier: str | None = None,
        refresh_token: str | None = None,
    ) -> TokenResult:
        """Dispatch on ``grant_type``. Returns (token_dict, error)."""
        if grant_type == "authorization_code":
            return self.redeem_code(code, redirect_uri, client_id, code_verifier)
        if grant_type == "refresh_token":
            return self.rotate_refresh_token(refresh_token)
        return None, OAuthErrorCode.UNSUPPORTED_GRANT_TYPE

    # -- authorization_code ------------------------------------------------

    def redeem_code(
        self,
        code: str | None,
        redirect_uri: str | None,
        client_id: str | None,
        code_verifier: str | None,
    ) -> TokenResult:
        if not code or not redirect_uri or not client_id or not code_verifier:
            return None, OAuthErrorCode.INVALID_REQUEST

        now = self._clock.now()
        reasons: list[RejectionReason] = []

        def check(record: AuthorizationCode) -> bool:
            if record.is_expired(now):
                reasons.append(RejectionReason.EXPIRED)
            if record.client_id != client_id:
                reasons.append(RejectionReason.CLIENT_MISMATCH)
            if record.redirect_uri != redirect_uri:
                reasons.append(RejectionReason.REDIRECT_MISMATCH)
            if not verify_code_verifier(code_verifier, record.code_challenge):
                reasons.append(RejectionReason.PKCE_MISMATCH)
            return not reasons

        auth_code = self._store.redeem_code(code, check)
        if auth_code is None:
            self._reject("authorization_code", client_id, reasons or [RejectionReason.NOT_FOUND])
            return None, OAuthErrorCode.INVALID_GRANT

        raw_refresh = self._issue_refresh_token(
            auth_code.owner_id, auth_code.client_id, auth_code.scope
        )
        access_token = self._access_tokens.issue(
            auth_code.owner_id, auth_code.client_id, auth_code.scope
        )

        _audit(
            "token_issued",
            auth_code.client_id,
            owner=auth_code.owner_id,
            scope=auth_code.scope,
        )
        return {
            "access_token": access_token,
            "token_type": "Bearer",
            "expires_in": self._access_tokens.expires_in,
            "refresh_token": raw_refresh,
            "scope": auth_code.scope,
        }, None

    # -- refresh_token -----------------------------------------------------

    def rotate_refresh_token(self, refresh_token: str | None) -> TokenResult:
        if not refresh_token:
            return None, OAuthErrorCode.INVALID_REQUEST

        now = self._clock.now()
        reasons: list[RejectionReason] = []
        raw_replacement = new_refresh_token(self._random)

        def check(record: RefreshToken) -> bool:
            if record.revoked_at is not None:
                reasons.append(RejectionReason.REVOKED)
            if record.is_expired(now):
                reasons.append(RejectionReason.EXPIRED)
            return not reasons

        def replacement(old: RefreshToken) -> RefreshToken:
            return RefreshToken(
                token_hash=hash_refresh_token(raw_replacement),
                owner_id=old.owner_id,
                client_id=old.client_id,
                scope=old.scope,
                expires_at=now + self._refresh_ttl,
            )

        new = self._store.rotate_refresh_token(
            hash_refresh_token(refresh_token), check, replacement
        )
        if new is None:
            self._reject("refresh_token", None, reasons or [RejectionReason.NOT_FOUND])
            return None, OAuthErrorCode.INVALID_GRANT

        access_token = self._access_tokens.issue(new.owner_id, new.client_id, new.scope)
        _audit("token_rotated", new.client_id, owner=new.owner_id, scope=new.scope)
        return {
            "access_token": access_token,
            "token_type": "Bearer",
            "expires_in": self._access_tokens.expires_in,
            "refresh_token": raw_replacement,
        }, None

    # -- helpers -----------------------------------------------------------

    def _issue_refresh_token(self, owner_id: str, client_id: str, scope: str) -> str:
        raw = new_refresh_token(self._random)
        self._store.save_refresh_token(
            RefreshToken(
                token_hash=hash_refresh_token(raw),
                owner_id=owner_id,
                client_id=client_id,
                scope=scope,
                expires_at=self._clock.now() + self._refresh_ttl,
            )
        )
        return raw

    def _reject(
        self, grant_type: str, client_id: str | None, reasons: list[RejectionReason]
    ) -> None:
        detail = ",".join(r.value for r in reasons)
        logger.debug("Rejected %s grant: %s", grant_type, detail)
        # A missing secret is what a replayed code or rotated token looks like
        severity = (
            AuditSeverity.ALERT if RejectionReason.NOT_FOUND in reasons else AuditSeverity.WARNING
        )
        _audit(
            "grant_rejected",
            client_id or "unknown",
            status="rejected",
            severity=severity,
            grant_type=grant_type,
            reasons=detail,
        )


def _audit(action: str, client_id: str, **context) -> None:
    try:
        from pocketauth.security.audit import get_audit_logger

        get_audit_logger().log_api_event(action=action, target=f"client:{client_id}", **context)
    except Exception:
        logger.debug("Audit write skipped", exc_info=True)
