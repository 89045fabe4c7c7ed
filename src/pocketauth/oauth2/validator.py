# Authorization request validation.
# Created: 2026-09-29
#
# Checks run in a fixed order and before any side effect. Failures are
# answered directly to the user agent; they never redirect to the client.

from __future__ import annotations

from collections.abc import Mapping

from pocketauth.oauth2.errors import AuthorizationRequestError
from pocketauth.oauth2.models import AuthorizationRequest, OAuthClient

SUPPORTED_CHALLENGE_METHOD = "S256"


def validate_authorization_request(
    params: Mapping[str, str | None],
    clients: Mapping[str, OAuthClient],
) -> AuthorizationRequest:
    """Validate authorize/consent parameters.

    Raises AuthorizationRequestError with a user-facing message on the
    first failing check.
    """
    client_id = params.get("client_id") or ""
    client = clients.get(client_id)
    if client is None:
        raise AuthorizationRequestError("Invalid client_id")

    redirect_uri = params.get("redirect_uri")
    if redirect_uri and redirect_uri != client.redirect_uri:
        raise AuthorizationRequestError("Invalid redirect_uri")

    state = params.get("state")
    if not state:
        raise AuthorizationRequestError("Missing state parameter")

    code_challenge = params.get("code_challenge")
    if not code_challenge:
        raise AuthorizationRequestError("Missing code_challenge")

    if params.get("code_challenge_method") != SUPPORTED_CHALLENGE_METHOD:
        raise AuthorizationRequestError("Invalid code_challenge_method")

    response_type = params.get("response_type")
    if response_type is not None and response_type != "code":
        raise AuthorizationRequestError("Unsupported response_type")

    return AuthorizationRequest(
        client=client,
        redirect_uri=client.redirect_uri,
        scope=params.get("scope") or "",
        state=state,
        code_challenge=code_challenge,
    )
