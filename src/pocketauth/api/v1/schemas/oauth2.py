# OAuth2 schemas.
# Created: 2026-10-01

from __future__ import annotations

from pydantic import BaseModel


class TokenRequest(BaseModel):
    """Token exchange or refresh request.

    ``grant_type`` is deliberately unconstrained so unknown values reach the
    engine and come back as ``unsupported_grant_type``.
    """

    model_config = {"extra": "ignore"}

    grant_type: str | None = None
    code: str | None = None
    redirect_uri: str | None = None
    client_id: str | None = None
    code_verifier: str | None = None
    refresh_token: str | None = None


class TokenResponse(BaseModel):
    """OAuth2 token response. ``scope`` is only echoed on code redemption."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: str
    scope: str | None = None


class RevokeRequest(BaseModel):
    """Token revocation request."""

    model_config = {"extra": "ignore"}

    token: str | None = None


class UserInfoResponse(BaseModel):
    id: str
    email: str
    name: str


class OAuthErrorResponse(BaseModel):
    error: str
