# OAuth2 authorization code + PKCE protocol engine.
# Created: 2026-09-28

from pocketauth.oauth2.errors import OAuthErrorCode
from pocketauth.oauth2.models import OAuthClient, ResourceOwner, SessionIdentity
from pocketauth.oauth2.server import (
    AuthorizationServer,
    OAuthServerConfig,
    get_oauth_server,
    reset_oauth_server,
)

__all__ = [
    "AuthorizationServer",
    "OAuthClient",
    "OAuthErrorCode",
    "OAuthServerConfig",
    "ResourceOwner",
    "SessionIdentity",
    "get_oauth_server",
    "reset_oauth_server",
]
