# Shared fixtures for the PocketAuth test suite.
# Created: 2026-10-03

import base64
import hashlib
import secrets
from datetime import UTC, datetime, timedelta

import pytest

from pocketauth.oauth2.models import OAuthClient, ResourceOwner
from pocketauth.oauth2.owners import InMemoryOwnerDirectory
from pocketauth.oauth2.server import AuthorizationServer, OAuthServerConfig
from pocketauth.oauth2.storage import InMemoryOAuthStore

CLIENT_ID = "test-client-id"
REDIRECT_URI = "http://localhost:3001/callback"


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime | None = None):
        self._now = now or datetime(2026, 10, 1, 12, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> None:
        self._now += timedelta(**kwargs)


def make_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge pair."""
    verifier = secrets.token_urlsafe(32)
    challenge = (
        base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest())
        .rstrip(b"=")
        .decode()
    )
    return verifier, challenge


@pytest.fixture(autouse=True)
def _isolate(tmp_path, monkeypatch):
    """Keep config, secrets, audit log and singletons out of the real home dir."""
    from pocketauth.config import get_settings
    from pocketauth.oauth2.server import reset_oauth_server
    from pocketauth.security.audit import reset_audit_logger
    from pocketauth.security.rate_limiter import auth_limiter, reset_token_limiter

    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for var in (
        "POCKETAUTH_CLIENT_ID",
        "POCKETAUTH_CLIENT_REDIRECT_URI",
        "POCKETAUTH_STORE_PATH",
        "POCKETAUTH_OWNERS_PATH",
        "POCKETAUTH_CLEANUP_INTERVAL_SECONDS",
    ):
        monkeypatch.delenv(var, raising=False)

    get_settings.cache_clear()
    reset_oauth_server()
    reset_token_limiter()
    auth_limiter.cleanup(max_age=-1.0)
    reset_audit_logger(tmp_path / "audit.jsonl")
    yield
    get_settings.cache_clear()
    reset_oauth_server()
    reset_token_limiter()
    reset_audit_logger()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def store():
    return InMemoryOAuthStore()


@pytest.fixture
def owners():
    return InMemoryOwnerDirectory(
        [ResourceOwner(id="1", email="alice@example.com", name="Alice")]
    )


@pytest.fixture
def config():
    return OAuthServerConfig(
        clients=(OAuthClient(client_id=CLIENT_ID, redirect_uri=REDIRECT_URI),),
        session_secret="test-session-secret",
        access_token_secret="test-access-secret",
    )


@pytest.fixture
def server(config, store, owners, clock):
    return AuthorizationServer(config, store=store, owners=owners, clock=clock)
