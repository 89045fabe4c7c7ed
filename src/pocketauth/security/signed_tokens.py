"""HMAC-signed, time-boxed assertions.

Token format: ``{base64url(json_claims)}.{hex_hmac}``

Claims always carry ``typ`` and ``exp`` (unix seconds). Session credentials
and access tokens share the format but use different keys and ``typ``
values, so one can never be replayed as the other. Nothing is stored
server-side: validity is signature + expiry only.
"""

import base64
import binascii
import hashlib
import hmac
import json
from datetime import datetime
from typing import Any

__all__ = ["create_signed_token", "verify_signed_token"]


def create_signed_token(
    key: str,
    claims: dict[str, Any],
    *,
    token_type: str,
    ttl_seconds: int,
    now: datetime,
) -> str:
    """Sign *claims* with *key*, expiring *ttl_seconds* after *now*."""
    payload = dict(claims)
    payload["typ"] = token_type
    payload["exp"] = int(now.timestamp()) + ttl_seconds
    body = _b64encode(json.dumps(payload, separators=(",", ":"), sort_keys=True).encode())
    return f"{body}.{_sign(key, body)}"


def verify_signed_token(
    token: str,
    key: str,
    *,
    token_type: str,
    now: datetime,
) -> dict[str, Any] | None:
    """Return the claims of *token* if the signature, type and expiry check out."""
    body, sep, sig = token.rpartition(".")
    if not sep or not body or not sig:
        return None

    if not hmac.compare_digest(sig.encode(), _sign(key, body).encode()):
        return None

    try:
        claims = json.loads(_b64decode(body))
    except (binascii.Error, ValueError):
        return None

    if not isinstance(claims, dict) or claims.get("typ") != token_type:
        return None

    exp = claims.get("exp")
    if not isinstance(exp, int) or now.timestamp() >= exp:
        return None

    return claims


def _sign(key: str, message: str) -> str:
    return hmac.new(key.encode(), message.encode(), hashlib.sha256).hexdigest()


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _b64decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))
