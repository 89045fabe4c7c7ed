# OAuth2 data models.
# Created: 2026-09-28

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class OAuthClient:
    """Registered OAuth2 client with its single redirect URI."""

    client_id: str
    redirect_uri: str
    client_name: str = ""

    @property
    def display_name(self) -> str:
        return self.client_name or self.client_id


@dataclass(frozen=True)
class ResourceOwner:
    """End user as known to the owner directory."""

    id: str
    email: str
    name: str = ""


@dataclass(frozen=True)
class SessionIdentity:
    """Identity asserted by a verified session credential."""

    owner_id: str
    email: str


@dataclass
class AuthorizationCode:
    """Single-use code bound to the client, redirect URI and PKCE challenge."""

    code: str
    owner_id: str
    client_id: str
    redirect_uri: str
    scope: str
    code_challenge: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


@dataclass
class RefreshToken:
    """Persisted refresh token record. Only the hash of the raw value is kept."""

    token_hash: str
    owner_id: str
    client_id: str
    scope: str
    expires_at: datetime
    revoked_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now

    def to_dict(self) -> dict:
        return {
            "token_hash": self.token_hash,
            "owner_id": self.owner_id,
            "client_id": self.client_id,
            "scope": self.scope,
            "expires_at": self.expires_at.isoformat(),
            "revoked_at": self.revoked_at.isoformat() if self.revoked_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> RefreshToken:
        return cls(
            token_hash=data["token_hash"],
            owner_id=data["owner_id"],
            client_id=data["client_id"],
            scope=data.get("scope", ""),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            revoked_at=datetime.fromisoformat(data["revoked_at"])
            if data.get("revoked_at")
            else None,
        )


@dataclass
class Consent:
    """Owner approval of a client, unique per (owner_id, client_id)."""

    owner_id: str
    client_id: str
    scope: str = ""


@dataclass(frozen=True)
class AuthorizationRequest:
    """A validated authorize request, with the redirect URI resolved."""

    client: OAuthClient
    redirect_uri: str
    scope: str
    state: str
    code_challenge: str
    code_challenge_method: str = "S256"
