"""Configuration management for PocketAuth.

Changes:
  - 2026-10-18: Added owners_path and cleanup_interval_seconds.
  - 2026-10-02: Signing secrets auto-generated into the config dir when unset.
  - 2026-09-28: Client registration moved out of the engine into settings.
"""

import json
import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def _chmod_safe(path: Path, mode: int) -> None:
    """Set file permissions, ignoring errors on Windows."""
    try:
        path.chmod(mode)
    except OSError:
        pass


def get_config_dir() -> Path:
    """Get the config directory, creating if needed."""
    config_dir = Path.home() / ".pocketauth"
    config_dir.mkdir(exist_ok=True)
    _chmod_safe(config_dir, 0o700)
    return config_dir


def get_config_path() -> Path:
    """Get the config file path."""
    return get_config_dir() / "config.json"


class Settings(BaseSettings):
    """PocketAuth settings with env and file support."""

    model_config = SettingsConfigDict(env_prefix="POCKETAUTH_", env_file=".env", extra="ignore")

    # Registered client (single client per deployment)
    client_id: str | None = Field(default=None, description="Registered OAuth2 client_id")
    client_name: str = Field(default="", description="Human-readable client name for consent")
    client_redirect_uri: str | None = Field(
        default=None, description="The single redirect URI registered for the client"
    )
    client_origin: str = Field(
        default="http://localhost:3001", description="Browser origin allowed by CORS"
    )

    # Signing keys (generated on first use when unset)
    session_secret: str | None = Field(
        default=None, description="HMAC key for session credentials"
    )
    access_token_secret: str | None = Field(
        default=None, description="HMAC key for access tokens"
    )

    # Session handling
    session_cookie_name: str = Field(default="pocketauth_session")
    session_ttl_seconds: int = Field(default=3600, description="Session credential lifetime")
    login_url: str = Field(default="/login", description="External login step")

    # Lifetimes
    code_ttl_seconds: int = Field(default=60, description="Authorization code lifetime")
    access_token_ttl_seconds: int = Field(default=3600, description="Access token lifetime")
    refresh_token_ttl_days: int = Field(default=7, description="Refresh token lifetime")

    # Storage
    store_path: str | None = Field(
        default=None, description="JSON file for refresh tokens and consents (memory if unset)"
    )

    # Owners resolvable by the userinfo endpoint
    owners_path: str | None = Field(
        default=None, description="JSON file listing resource owners (id, email, name)"
    )

    # Housekeeping
    cleanup_interval_seconds: int = Field(
        default=300, description="Eviction sweep period while serving (0 disables)"
    )

    # Rate limiting
    token_rate_limit_per_minute: int = Field(default=10)

    # Web Server
    web_host: str = Field(default="127.0.0.1", description="Web server host")
    web_port: int = Field(default=3000, description="Web server port")

    def save(self) -> None:
        """Save non-secret settings to config.json."""
        config_path = get_config_path()
        data = self.model_dump(exclude={"session_secret", "access_token_secret"})
        config_path.write_text(json.dumps(data, indent=2))
        _chmod_safe(config_path, 0o600)

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from the config file, with env vars taking precedence."""
        config_path = get_config_path()
        data: dict = {}
        if config_path.exists():
            try:
                data = json.loads(config_path.read_text())
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Ignoring unreadable config %s: %s", config_path, exc)

        # Env vars win over the file
        env = cls()
        for name in cls.model_fields:
            if name in env.model_fields_set:
                data.pop(name, None)

        if data:
            try:
                return cls(**data)
            except Exception:
                logger.warning("Invalid values in %s, using defaults", config_path)
        return env


@lru_cache
def get_settings(force_reload: bool = False) -> Settings:
    """Get cached settings instance."""
    if force_reload:
        get_settings.cache_clear()
    return Settings.load()


def get_signing_secret(name: str) -> str:
    """Return the persisted signing secret *name*, generating it if needed.

    Rotating the file invalidates every credential signed with it.
    """
    secret_path = get_config_dir() / f"{name}.key"
    if secret_path.exists():
        secret = secret_path.read_text().strip()
        if secret:
            return secret

    secret = secrets.token_urlsafe(48)
    secret_path.write_text(secret)
    _chmod_safe(secret_path, 0o600)
    logger.info("Generated new signing secret: %s", secret_path.name)
    return secret
