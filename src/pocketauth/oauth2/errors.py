# OAuth2 error taxonomy.
# Created: 2026-09-28
#
# Error codes are what the client sees. Rejection reasons are internal
# diagnostics only (logs and audit); several reasons collapse into one code.

from __future__ import annotations

from enum import Enum


class OAuthErrorCode(str, Enum):
    INVALID_REQUEST = "invalid_request"
    INVALID_GRANT = "invalid_grant"
    ACCESS_DENIED = "access_denied"
    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"


class RejectionReason(str, Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    REVOKED = "revoked"
    CLIENT_MISMATCH = "client_mismatch"
    REDIRECT_MISMATCH = "redirect_mismatch"
    PKCE_MISMATCH = "pkce_mismatch"


class StoreError(Exception):
    """Persistence failure. Reported to clients as a generic server error."""


class AuthorizationRequestError(ValueError):
    """Malformed authorize request. Answered synchronously, never redirected."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
