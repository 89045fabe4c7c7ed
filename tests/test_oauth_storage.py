# Tests for the in-memory OAuth store.
# Created: 2026-10-03

import json
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from pocketauth.oauth2.errors import StoreError
from pocketauth.oauth2.models import AuthorizationCode, Consent, RefreshToken
from pocketauth.oauth2.storage import InMemoryOAuthStore

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)


def _code(value: str = "abc", expires_in: int = 60) -> AuthorizationCode:
    return AuthorizationCode(
        code=value,
        owner_id="1",
        client_id="c",
        redirect_uri="http://localhost/cb",
        scope="profile",
        code_challenge="challenge",
        expires_at=NOW + timedelta(seconds=expires_in),
    )


def _refresh(token_hash: str = "h1", days: int = 7) -> RefreshToken:
    return RefreshToken(
        token_hash=token_hash,
        owner_id="1",
        client_id="c",
        scope="profile",
        expires_at=NOW + timedelta(days=days),
    )


class TestCodes:
    def test_redeem_deletes_on_accept(self):
        store = InMemoryOAuthStore()
        store.save_code(_code())
        assert store.redeem_code("abc", lambda c: True).code == "abc"
        assert store.redeem_code("abc", lambda c: True) is None

    def test_redeem_keeps_code_on_reject(self):
        store = InMemoryOAuthStore()
        store.save_code(_code())
        assert store.redeem_code("abc", lambda c: False) is None
        assert store.redeem_code("abc", lambda c: True) is not None

    def test_redeem_unknown(self):
        assert InMemoryOAuthStore().redeem_code("missing", lambda c: True) is None


class TestRefreshTokens:
    def test_rotate_swaps_records(self):
        store = InMemoryOAuthStore()
        store.save_refresh_token(_refresh("old"))
        new = store.rotate_refresh_token(
            "old", lambda t: True, lambda t: _refresh("new")
        )
        assert new.token_hash == "new"
        assert store.get_refresh_token("old") is None
        assert store.get_refresh_token("new") is not None

    def test_rotate_rejected_leaves_record(self):
        store = InMemoryOAuthStore()
        store.save_refresh_token(_refresh("old"))
        assert store.rotate_refresh_token("old", lambda t: False, lambda t: _refresh("new")) is None
        assert store.get_refresh_token("old") is not None
        assert store.get_refresh_token("new") is None

    def test_mark_revoked_only_once(self):
        store = InMemoryOAuthStore()
        store.save_refresh_token(_refresh("h"))
        assert store.mark_refresh_token_revoked("h", NOW).revoked_at == NOW
        assert store.mark_refresh_token_revoked("h", NOW + timedelta(minutes=1)) is None
        assert store.mark_refresh_token_revoked("missing", NOW) is None


class TestConsents:
    def test_find_or_create_is_idempotent(self):
        store = InMemoryOAuthStore()
        first = store.find_or_create_consent(Consent("1", "c", "profile"))
        second = store.find_or_create_consent(Consent("1", "c", "profile email"))
        assert second is first
        assert store.get_consent("1", "c").scope == "profile"

    def test_delete(self):
        store = InMemoryOAuthStore()
        store.find_or_create_consent(Consent("1", "c"))
        assert store.delete_consent("1", "c") is True
        assert store.delete_consent("1", "c") is False
        assert store.get_consent("1", "c") is None


class TestPersistence:
    def test_tokens_and_consents_survive_restart(self, tmp_path):
        path = tmp_path / "store.json"
        store = InMemoryOAuthStore(path)
        store.save_refresh_token(_refresh("h"))
        store.find_or_create_consent(Consent("1", "c", "profile"))
        store.save_code(_code())

        reloaded = InMemoryOAuthStore(path)
        assert reloaded.get_refresh_token("h").expires_at == NOW + timedelta(days=7)
        assert reloaded.get_consent("1", "c") is not None
        # Codes are never written to disk
        assert reloaded.redeem_code("abc", lambda c: True) is None
        assert "abc" not in path.read_text()

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json")
        store = InMemoryOAuthStore(path)
        assert store.get_refresh_token("h") is None

    def test_file_format(self, tmp_path):
        path = tmp_path / "store.json"
        store = InMemoryOAuthStore(path)
        store.save_refresh_token(_refresh("h"))
        data = json.loads(path.read_text())
        assert data["refresh_tokens"][0]["token_hash"] == "h"
        assert data["refresh_tokens"][0]["revoked_at"] is None

    def test_write_failure_raises_store_error_and_rolls_back(self, tmp_path):
        path = tmp_path / "store.json"
        store = InMemoryOAuthStore(path)
        store.save_refresh_token(_refresh("old"))

        with patch("pathlib.Path.write_text", side_effect=OSError("disk full")):
            with pytest.raises(StoreError):
                store.rotate_refresh_token("old", lambda t: True, lambda t: _refresh("new"))

        assert store.get_refresh_token("old") is not None
        assert store.get_refresh_token("new") is None

    def test_failed_save_refresh_token_rolls_back(self, tmp_path):
        store = InMemoryOAuthStore(tmp_path / "store.json")
        with patch("pathlib.Path.replace", side_effect=OSError("disk full")):
            with pytest.raises(StoreError):
                store.save_refresh_token(_refresh("h"))
        assert store.get_refresh_token("h") is None

    def test_failed_mark_revoked_rolls_back(self, tmp_path):
        store = InMemoryOAuthStore(tmp_path / "store.json")
        store.save_refresh_token(_refresh("h"))
        with patch("pathlib.Path.replace", side_effect=OSError("disk full")):
            with pytest.raises(StoreError):
                store.mark_refresh_token_revoked("h", NOW)
        assert store.get_refresh_token("h").revoked_at is None
        assert store.mark_refresh_token_revoked("h", NOW) is not None

    def test_failed_revoke_keeps_token_and_consent(self, tmp_path):
        store = InMemoryOAuthStore(tmp_path / "store.json")
        store.save_refresh_token(_refresh("h"))
        store.find_or_create_consent(Consent("1", "c", "profile"))
        with patch("pathlib.Path.replace", side_effect=OSError("disk full")):
            with pytest.raises(StoreError):
                store.revoke_refresh_token("h", NOW)
        assert store.get_refresh_token("h").revoked_at is None
        assert store.get_consent("1", "c") is not None

    def test_failed_consent_writes_roll_back(self, tmp_path):
        store = InMemoryOAuthStore(tmp_path / "store.json")
        store.find_or_create_consent(Consent("1", "kept"))
        with patch("pathlib.Path.replace", side_effect=OSError("disk full")):
            with pytest.raises(StoreError):
                store.find_or_create_consent(Consent("1", "new"))
            with pytest.raises(StoreError):
                store.delete_consent("1", "kept")
        assert store.get_consent("1", "new") is None
        assert store.get_consent("1", "kept") is not None

    def test_failed_cleanup_restores_tokens(self, tmp_path):
        store = InMemoryOAuthStore(tmp_path / "store.json")
        store.save_refresh_token(_refresh("dead", days=-1))
        with patch("pathlib.Path.replace", side_effect=OSError("disk full")):
            with pytest.raises(StoreError):
                store.cleanup_expired(NOW)
        assert store.get_refresh_token("dead") is not None


class TestRevoke:
    def test_marks_token_and_drops_consent(self):
        store = InMemoryOAuthStore()
        store.save_refresh_token(_refresh("h"))
        store.find_or_create_consent(Consent("1", "c"))
        store.find_or_create_consent(Consent("1", "other"))

        assert store.revoke_refresh_token("h", NOW).revoked_at == NOW
        assert store.get_consent("1", "c") is None
        # Only the token's own client loses consent
        assert store.get_consent("1", "other") is not None

    def test_second_revoke_is_noop(self):
        store = InMemoryOAuthStore()
        store.save_refresh_token(_refresh("h"))
        store.revoke_refresh_token("h", NOW)
        store.find_or_create_consent(Consent("1", "c"))
        assert store.revoke_refresh_token("h", NOW + timedelta(minutes=1)) is None
        assert store.get_consent("1", "c") is not None

    def test_unknown_token(self):
        assert InMemoryOAuthStore().revoke_refresh_token("missing", NOW) is None


class TestCleanup:
    def test_removes_expired_codes_and_tokens(self):
        store = InMemoryOAuthStore()
        store.save_code(_code("fresh", expires_in=60))
        store.save_code(_code("stale", expires_in=-1))
        store.save_refresh_token(_refresh("live", days=7))
        store.save_refresh_token(_refresh("dead", days=-1))

        assert store.cleanup_expired(NOW) == 2
        assert store.redeem_code("fresh", lambda c: True) is not None
        assert store.get_refresh_token("live") is not None
        assert store.get_refresh_token("dead") is None

    def test_purge_expired_codes_is_memory_only(self, tmp_path):
        path = tmp_path / "store.json"
        store = InMemoryOAuthStore(path)
        store.save_code(_code("fresh", expires_in=60))
        store.save_code(_code("stale", expires_in=-1))

        assert store.purge_expired_codes(NOW) == 1
        assert list(store._codes) == ["fresh"]
        assert not path.exists()
