# OAuth2 Authorization Server with PKCE support.
# Created: 2026-09-30
#
# Wires the session, consent, code, token and revocation components around
# one store. Holds no per-request state, so several instances can share a
# store and signing keys.

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pocketauth.oauth2.clock import Clock, RandomSource, SecureRandom, SystemClock
from pocketauth.oauth2.codes import CODE_TTL, AuthorizationCodeIssuer
from pocketauth.oauth2.consent import ConsentManager
from pocketauth.oauth2.errors import OAuthErrorCode
from pocketauth.oauth2.exchange import TokenExchangeEngine, TokenResult
from pocketauth.oauth2.models import (
    AuthorizationRequest,
    OAuthClient,
    ResourceOwner,
    SessionIdentity,
)
from pocketauth.oauth2.owners import InMemoryOwnerDirectory, OwnerDirectory
from pocketauth.oauth2.revocation import RevocationService
from pocketauth.oauth2.session import SessionAuthenticator
from pocketauth.oauth2.storage import InMemoryOAuthStore, OAuthStore
from pocketauth.oauth2.tokens import ACCESS_TOKEN_TTL, REFRESH_TOKEN_TTL, AccessTokenSigner
from pocketauth.oauth2.validator import validate_authorization_request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OAuthServerConfig:
    """Explicit engine configuration: clients, keys and lifetimes."""

    clients: tuple[OAuthClient, ...]
    session_secret: str
    access_token_secret: str
    code_ttl: timedelta = CODE_TTL
    access_token_ttl: timedelta = ACCESS_TOKEN_TTL
    refresh_token_ttl: timedelta = REFRESH_TOKEN_TTL
    session_ttl: timedelta = timedelta(hours=1)
    store_path: Path | None = field(default=None)
    owners_path: Path | None = field(default=None)

    @classmethod
    def from_settings(cls, settings) -> OAuthServerConfig:
        from pocketauth.config import get_signing_secret

        if not settings.client_id or not settings.client_redirect_uri:
            raise RuntimeError(
                "No OAuth client configured: set POCKETAUTH_CLIENT_ID and "
                "POCKETAUTH_CLIENT_REDIRECT_URI"
            )
        client = OAuthClient(
            client_id=settings.client_id,
            redirect_uri=settings.client_redirect_uri,
            client_name=settings.client_name,
        )
        return cls(
            clients=(client,),
            session_secret=settings.session_secret or get_signing_secret("session"),
            access_token_secret=settings.access_token_secret
            or get_signing_secret("access_token"),
            code_ttl=timedelta(seconds=settings.code_ttl_seconds),
            access_token_ttl=timedelta(seconds=settings.access_token_ttl_seconds),
            refresh_token_ttl=timedelta(days=settings.refresh_token_ttl_days),
            session_ttl=timedelta(seconds=settings.session_ttl_seconds),
            store_path=Path(settings.store_path).expanduser() if settings.store_path else None,
            owners_path=Path(settings.owners_path).expanduser() if settings.owners_path else None,
        )


@dataclass(frozen=True)
class AuthorizeOutcome:
    """What the authorize endpoint should do next.

    ``kind`` is "login" (no session), "consent" (prompt the owner) or
    "redirect" (consent on file, code issued; follow ``redirect_to``).
    """

    kind: str
    request: AuthorizationRequest
    redirect_to: str | None = None


def with_query(uri: str, params: Mapping[str, str]) -> str:
    """Append *params* to *uri*, keeping any query it already has."""
    parts = urlsplit(uri)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend(params.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


class AuthorizationServer:
    """OAuth2 authorization server with PKCE."""

    def __init__(
        self,
        config: OAuthServerConfig,
        store: OAuthStore | None = None,
        owners: OwnerDirectory | None = None,
        clock: Clock | None = None,
        random: RandomSource | None = None,
    ):
        if not config.clients:
            raise ValueError("at least one OAuth client must be registered")
        self.config = config
        self.clients: dict[str, OAuthClient] = {c.client_id: c for c in config.clients}
        self.store = store or InMemoryOAuthStore(config.store_path)
        if owners is None:
            owners = (
                InMemoryOwnerDirectory.from_file(config.owners_path)
                if config.owners_path
                else InMemoryOwnerDirectory()
            )
        self.owners = owners
        self.clock = clock or SystemClock()
        random = random or SecureRandom()

        self.sessions = SessionAuthenticator(
            config.session_secret,
            ttl_seconds=int(config.session_ttl.total_seconds()),
            clock=self.clock,
        )
        self.consents = ConsentManager(self.store)
        self.codes = AuthorizationCodeIssuer(
            self.store, clock=self.clock, random=random, ttl=config.code_ttl
        )
        self.access_tokens = AccessTokenSigner(
            config.access_token_secret, ttl=config.access_token_ttl, clock=self.clock
        )
        self.engine = TokenExchangeEngine(
            self.store,
            self.access_tokens,
            clock=self.clock,
            random=random,
            refresh_ttl=config.refresh_token_ttl,
        )
        self.revocation = RevocationService(self.store, clock=self.clock)

    # -- authorize / consent ----------------------------------------------

    def authorize(
        self, params: Mapping[str, str | None], identity: SessionIdentity | None
    ) -> AuthorizeOutcome:
        """Validate an authorize request and pick the next step.

        Raises AuthorizationRequestError for malformed requests, before any
        state is created.
        """
        request = validate_authorization_request(params, self.clients)

        if identity is None:
            return AuthorizeOutcome(kind="login", request=request)

        if not self.consents.has_consent(identity.owner_id, request.client.client_id):
            return AuthorizeOutcome(kind="consent", request=request)

        return AuthorizeOutcome(
            kind="redirect",
            request=request,
            redirect_to=self.decide(request, identity, allow=True),
        )

    def decide(self, request: AuthorizationRequest, identity: SessionIdentity, allow: bool) -> str:
        """Apply the owner's decision and return the client redirect URL."""
        if not allow:
            logger.info("Owner %s denied client %s", identity.owner_id, request.client.client_id)
            return with_query(
                request.redirect_uri,
                {"error": OAuthErrorCode.ACCESS_DENIED.value, "state": request.state},
            )

        self.consents.record_consent(identity.owner_id, request.client.client_id, request.scope)
        auth_code = self.codes.issue(
            owner_id=identity.owner_id,
            client_id=request.client.client_id,
            redirect_uri=request.redirect_uri,
            scope=request.scope,
            code_challenge=request.code_challenge,
        )
        return with_query(request.redirect_uri, {"code": auth_code.code, "state": request.state})

    # -- token / revoke ----------------------------------------------------

    def token(self, grant_type: str | None, **params: str | None) -> TokenResult:
        return self.engine.exchange(grant_type, **params)

    def revoke(self, token: str | None) -> None:
        self.revocation.revoke(token)

    # -- resource side -----------------------------------------------------

    def verify_access_token(self, access_token: str | None) -> dict | None:
        """Return access token claims if valid and unexpired."""
        return self.access_tokens.verify(access_token or "")

    def userinfo(
        self, access_token: str | None
    ) -> tuple[ResourceOwner | None, OAuthErrorCode | None]:
        claims = self.verify_access_token(access_token)
        if claims is None or not isinstance(claims.get("sub"), str):
            return None, OAuthErrorCode.UNAUTHENTICATED

        owner = self.owners.get_owner(claims["sub"])
        if owner is None:
            return None, OAuthErrorCode.NOT_FOUND
        return owner, None

    def cleanup_expired(self) -> int:
        return self.store.cleanup_expired(self.clock.now())


# Singleton
_server: AuthorizationServer | None = None


def get_oauth_server() -> AuthorizationServer:
    global _server
    if _server is None:
        from pocketauth.config import get_settings

        _server = AuthorizationServer(OAuthServerConfig.from_settings(get_settings()))
    return _server


def reset_oauth_server() -> None:
    global _server
    _server = None
