# Tests for the served app's background eviction.
# Created: 2026-10-18

import time
from datetime import timedelta

import pytest
from conftest import CLIENT_ID, REDIRECT_URI, make_pkce_pair
from fastapi.testclient import TestClient

from pocketauth.api.serve import create_api_app, sweep_expired
from pocketauth.oauth2.models import RefreshToken


@pytest.fixture
def served(server, monkeypatch):
    import pocketauth.oauth2.server as mod

    monkeypatch.setattr(mod, "_server", server)
    return server


def _abandon_code(server) -> str:
    _, challenge = make_pkce_pair()
    return server.codes.issue("1", CLIENT_ID, REDIRECT_URI, "profile", challenge).code


class TestSweepExpired:
    def test_evicts_expired_codes_and_tokens(self, served, store, clock):
        _abandon_code(served)
        store.save_refresh_token(
            RefreshToken(
                token_hash="dead",
                owner_id="1",
                client_id=CLIENT_ID,
                scope="",
                expires_at=clock.now() + timedelta(days=7),
            )
        )
        clock.advance(days=8)

        removed, _ = sweep_expired()
        assert removed == 2
        assert store._codes == {}
        assert store.get_refresh_token("dead") is None

    def test_keeps_live_records(self, served, store):
        code = _abandon_code(served)
        assert sweep_expired() == (0, 0)
        assert code in store._codes

    def test_evicts_idle_rate_limit_buckets(self, served):
        from pocketauth.security.rate_limiter import auth_limiter, get_token_limiter

        auth_limiter.check("198.51.100.7")
        get_token_limiter().check("198.51.100.7")
        for limiter in (auth_limiter, get_token_limiter()):
            limiter._buckets["198.51.100.7"].last_refill -= 7200

        _, buckets = sweep_expired()
        assert buckets == 2
        assert "198.51.100.7" not in auth_limiter._buckets
        assert "198.51.100.7" not in get_token_limiter()._buckets


class TestLifespanSweep:
    def test_running_app_evicts_abandoned_codes(self, served, store, clock):
        _abandon_code(served)
        clock.advance(minutes=5)

        app = create_api_app()
        app.state.cleanup_interval = 0.05
        with TestClient(app):
            deadline = time.monotonic() + 5
            while store._codes and time.monotonic() < deadline:
                time.sleep(0.05)

        assert store._codes == {}

    def test_interval_from_settings(self, monkeypatch):
        from pocketauth.config import get_settings

        monkeypatch.setenv("POCKETAUTH_CLEANUP_INTERVAL_SECONDS", "0")
        get_settings.cache_clear()
        app = create_api_app()
        assert app.state.cleanup_interval == 0
        # Sweep disabled: startup and shutdown still succeed
        with TestClient(app) as client:
            assert client.get("/").status_code == 200
