# OAuth2 router — authorize, consent, token, revoke, userinfo.
# Created: 2026-10-01

from __future__ import annotations

import html
import logging

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from pocketauth.api.v1.schemas.oauth2 import (
    OAuthErrorResponse,
    RevokeRequest,
    TokenRequest,
    TokenResponse,
    UserInfoResponse,
)
from pocketauth.oauth2.errors import AuthorizationRequestError, OAuthErrorCode
from pocketauth.oauth2.validator import validate_authorization_request

logger = logging.getLogger(__name__)

router = APIRouter(tags=["OAuth2"])

_NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}

_CONSENT_HTML = """<!DOCTYPE html>
<html><head><title>Authorize</title>
<style>
body {{ font-family: system-ui; max-width: 420px; margin: 40px auto; padding: 20px; }}
.btn {{ padding: 10px 24px; border: none; border-radius: 6px; cursor: pointer; font-size: 14px; }}
.allow {{ background: #4f46e5; color: white; }} .allow:hover {{ background: #4338ca; }}
.deny {{ background: #e5e7eb; color: #1e293b; margin-right: 12px; }}
.scopes {{ background: #f3f4f6; padding: 12px; border-radius: 8px; margin: 16px 0; }}
</style></head><body>
<h2>Authorize Application</h2>
<p><strong>{client_name}</strong> is requesting access to your account.</p>
<div class="scopes"><strong>Requested access:</strong><ul>{scope_items}</ul></div>
<form method="POST" action="{action}">
<input type="hidden" name="client_id" value="{client_id}">
<input type="hidden" name="redirect_uri" value="{redirect_uri}">
<input type="hidden" name="state" value="{state}">
<input type="hidden" name="scope" value="{scope}">
<input type="hidden" name="code_challenge" value="{code_challenge}">
<button type="submit" name="decision" value="deny" class="btn deny">Deny</button>
<button type="submit" name="decision" value="allow" class="btn allow">Allow</button>
</form></body></html>"""


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _too_many_requests(headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=429, content={"detail": "Too many requests"}, headers=headers
    )


def _oauth_error(error: OAuthErrorCode, status_code: int = 400) -> JSONResponse:
    headers = dict(_NO_STORE)
    if error == OAuthErrorCode.UNAUTHENTICATED:
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(status_code=status_code, content={"error": error.value}, headers=headers)


async def _read_body(request: Request) -> dict[str, str]:
    """Read a form or JSON body into a flat dict of string fields."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            return {}
    else:
        data = await request.form()
    if not hasattr(data, "items"):
        return {}
    return {k: v for k, v in data.items() if isinstance(v, str)}


def _render_consent(request: Request, auth_request) -> HTMLResponse:
    esc = html.escape
    scope_items = "".join(f"<li>{esc(s)}</li>" for s in auth_request.scope.split())
    page = _CONSENT_HTML.format(
        action=esc(str(request.url_for("authorize_consent"))),
        client_name=esc(auth_request.client.display_name),
        client_id=esc(auth_request.client.client_id),
        redirect_uri=esc(auth_request.redirect_uri),
        state=esc(auth_request.state),
        scope=esc(auth_request.scope),
        scope_items=scope_items,
        code_challenge=esc(auth_request.code_challenge),
    )
    return HTMLResponse(page, headers={"Cache-Control": "no-store"})


@router.get("/oauth/authorize")
async def authorize(request: Request):
    """Validate an authorization request, then log in, prompt or redirect."""
    from pocketauth.config import get_settings
    from pocketauth.oauth2.server import get_oauth_server, with_query
    from pocketauth.security.rate_limiter import auth_limiter

    if not auth_limiter.allow(_client_ip(request)):
        return _too_many_requests()

    server = get_oauth_server()
    settings = get_settings()

    identity = server.sessions.authenticate(request.cookies.get(settings.session_cookie_name))
    try:
        outcome = server.authorize(dict(request.query_params), identity)
    except AuthorizationRequestError as exc:
        return JSONResponse(status_code=400, content={"detail": exc.message})

    if outcome.kind == "login":
        return_to = request.url.path
        if request.url.query:
            return_to = f"{return_to}?{request.url.query}"
        return RedirectResponse(
            with_query(settings.login_url, {"return_to": return_to}), status_code=302
        )

    if outcome.kind == "consent":
        return _render_consent(request, outcome.request)

    return RedirectResponse(outcome.redirect_to, status_code=302)


@router.post("/oauth/consent", name="authorize_consent")
async def authorize_consent(request: Request):
    """Process the consent form submission."""
    from pocketauth.config import get_settings
    from pocketauth.oauth2.server import get_oauth_server
    from pocketauth.security.rate_limiter import auth_limiter

    if not auth_limiter.allow(_client_ip(request)):
        return _too_many_requests()

    server = get_oauth_server()
    settings = get_settings()

    identity = server.sessions.authenticate(request.cookies.get(settings.session_cookie_name))
    if identity is None:
        return JSONResponse(status_code=401, content={"detail": "Session expired"})

    form = await _read_body(request)
    form.setdefault("code_challenge_method", "S256")
    form.pop("response_type", None)
    try:
        auth_request = validate_authorization_request(form, server.clients)
    except AuthorizationRequestError as exc:
        return JSONResponse(status_code=400, content={"detail": exc.message})

    allow = form.get("decision") == "allow"
    return RedirectResponse(server.decide(auth_request, identity, allow=allow), status_code=302)


@router.post(
    "/oauth/token",
    response_model=TokenResponse,
    response_model_exclude_none=True,
    responses={400: {"model": OAuthErrorResponse}},
)
async def token_exchange(request: Request):
    """Exchange an authorization code or refresh token for a new token pair."""
    from pocketauth.oauth2.server import get_oauth_server
    from pocketauth.security.rate_limiter import get_token_limiter

    rl_info = get_token_limiter().check(_client_ip(request))
    if not rl_info.allowed:
        return _too_many_requests(rl_info.headers())

    body = TokenRequest(**await _read_body(request))
    server = get_oauth_server()
    result, error = server.token(
        body.grant_type,
        code=body.code,
        redirect_uri=body.redirect_uri,
        client_id=body.client_id,
        code_verifier=body.code_verifier,
        refresh_token=body.refresh_token,
    )
    if error:
        return _oauth_error(error)

    return JSONResponse(content=result, headers=_NO_STORE)


@router.post("/oauth/revoke")
async def revoke_token(request: Request):
    """Revoke a refresh token. Always answers 200 with an empty body."""
    from pocketauth.oauth2.server import get_oauth_server

    body = RevokeRequest(**await _read_body(request))
    get_oauth_server().revoke(body.token)
    return Response(status_code=200)


@router.get(
    "/oauth/userinfo",
    response_model=UserInfoResponse,
    responses={401: {"model": OAuthErrorResponse}, 404: {"model": OAuthErrorResponse}},
)
async def userinfo(request: Request):
    """Return the owner behind a Bearer access token."""
    from pocketauth.oauth2.server import get_oauth_server

    auth_header = request.headers.get("Authorization", "")
    bearer = (
        auth_header.removeprefix("Bearer ").strip() if auth_header.startswith("Bearer ") else ""
    )
    if not bearer:
        return _oauth_error(OAuthErrorCode.UNAUTHENTICATED, status_code=401)

    owner, error = get_oauth_server().userinfo(bearer)
    if error == OAuthErrorCode.NOT_FOUND:
        return _oauth_error(error, status_code=404)
    if error:
        return _oauth_error(error, status_code=401)

    return UserInfoResponse(id=owner.id, email=owner.email, name=owner.name)
