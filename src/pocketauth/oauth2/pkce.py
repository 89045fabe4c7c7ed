# PKCE (RFC 7636) S256 verification.
# Created: 2026-09-28

from __future__ import annotations

import base64
import hashlib
import hmac


def compute_s256_challenge(code_verifier: str) -> str:
    """S256 = BASE64URL(SHA256(code_verifier)) without padding."""
    return (
        base64.urlsafe_b64encode(hashlib.sha256(code_verifier.encode()).digest())
        .rstrip(b"=")
        .decode()
    )


def verify_code_verifier(code_verifier: str, code_challenge: str) -> bool:
    """Return True iff *code_verifier* hashes to the stored *code_challenge*."""
    if not code_verifier or not code_challenge:
        return False
    return hmac.compare_digest(
        compute_s256_challenge(code_verifier).encode(), code_challenge.encode()
    )
