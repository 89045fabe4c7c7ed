# Tests for router registration and CORS configuration.
# Created: 2026-10-04

from fastapi.testclient import TestClient

from pocketauth.api.v1 import _V1_ROUTERS, mount_v1_routers


class TestV1RouterRegistration:
    def test_oauth_router_listed(self):
        assert [r[0] for r in _V1_ROUTERS] == ["pocketauth.api.v1.oauth2"]

    def test_mount_v1_routers(self):
        from fastapi import FastAPI

        app = FastAPI()
        mount_v1_routers(app)
        paths = app.openapi()["paths"]
        assert paths["/api/v1/oauth/authorize"].keys() == {"get"}
        assert paths["/api/v1/oauth/userinfo"].keys() == {"get"}
        for name in ("consent", "token", "revoke"):
            assert "post" in paths[f"/api/v1/oauth/{name}"]

    def test_mounted_routes_answer(self):
        from fastapi import FastAPI

        app = FastAPI()
        mount_v1_routers(app)
        client = TestClient(app)
        # 405 rather than 404 proves the route is mounted under /api/v1
        assert client.get("/api/v1/oauth/token").status_code == 405
        assert client.get("/api/v1/oauth/revoke").status_code == 405
        assert client.get("/api/v1/oauth/userinfo").status_code == 401
        assert client.get("/oauth/userinfo").status_code == 404


class TestCORS:
    def _client(self):
        from pocketauth.api.serve import create_api_app

        return TestClient(create_api_app())

    def test_client_origin_allowed(self):
        resp = self._client().options(
            "/api/v1/oauth/token",
            headers={
                "Origin": "http://localhost:3001",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3001"
        assert resp.headers["access-control-allow-credentials"] == "true"

    def test_other_origin_rejected(self):
        resp = self._client().options(
            "/api/v1/oauth/token",
            headers={
                "Origin": "https://evil.example",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert "access-control-allow-origin" not in resp.headers

    def test_origin_from_settings(self, monkeypatch):
        from pocketauth.config import get_settings

        monkeypatch.setenv("POCKETAUTH_CLIENT_ORIGIN", "https://app.test")
        get_settings.cache_clear()
        resp = self._client().get("/", headers={"Origin": "https://app.test"})
        assert resp.headers["access-control-allow-origin"] == "https://app.test"
