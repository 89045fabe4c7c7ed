"""PocketAuth - OAuth2 authorization server with PKCE and refresh-token rotation."""
