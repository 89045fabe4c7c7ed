# Time and randomness sources, injected so tests can control them.
# Created: 2026-09-28

from __future__ import annotations

import secrets
from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        ...


class RandomSource(Protocol):
    def token_urlsafe(self, nbytes: int) -> str: ...

    def token_hex(self, nbytes: int) -> str: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(UTC)


class SecureRandom:
    """CSPRNG-backed source (``secrets``)."""

    def token_urlsafe(self, nbytes: int) -> str:
        return secrets.token_urlsafe(nbytes)

    def token_hex(self, nbytes: int) -> str:
        return secrets.token_hex(nbytes)
