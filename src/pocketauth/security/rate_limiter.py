"""In-memory token-bucket rate limiter for the OAuth endpoints.

Pre-configured tiers:
  - auth:   1 req/s, burst 5   (authorize / consent)
  - token:  configurable, default 10 req/min per client IP (token endpoint)
"""

from __future__ import annotations

import math
import threading
import time

__all__ = [
    "RateLimiter",
    "RateLimitInfo",
    "auth_limiter",
    "get_token_limiter",
    "reset_token_limiter",
]


class _Bucket:
    """A single token bucket for one client."""

    __slots__ = ("tokens", "last_refill")

    def __init__(self, capacity: float, now: float):
        self.tokens: float = capacity
        self.last_refill: float = now


class RateLimitInfo:
    """Rate limit state returned by ``check()``."""

    __slots__ = ("allowed", "limit", "remaining", "reset_after")

    def __init__(self, allowed: bool, limit: int, remaining: int, reset_after: float):
        self.allowed = allowed
        self.limit = limit
        self.remaining = remaining
        self.reset_after = reset_after

    def headers(self) -> dict[str, str]:
        """Return rate-limit response headers."""
        h: dict[str, str] = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_after)),
        }
        if not self.allowed:
            h["Retry-After"] = str(math.ceil(self.reset_after))
        return h


class RateLimiter:
    """Token-bucket rate limiter keyed by client identifier.

    Parameters
    ----------
    rate : float
        Tokens added per second.
    capacity : int
        Maximum burst size (bucket capacity).
    """

    def __init__(self, rate: float, capacity: int):
        self.rate = rate
        self.capacity = capacity
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        """Return True if the request is allowed, consuming one token."""
        return self.check(key).allowed

    def check(self, key: str) -> RateLimitInfo:
        """Check rate limit and return detailed info with header values."""
        now = time.monotonic()

        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = self._buckets[key] = _Bucket(self.capacity, now)

            elapsed = now - bucket.last_refill
            bucket.tokens = min(self.capacity, bucket.tokens + elapsed * self.rate)
            bucket.last_refill = now

            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                remaining = int(bucket.tokens)
                reset_after = (self.capacity - bucket.tokens) / self.rate if self.rate > 0 else 0
                return RateLimitInfo(True, self.capacity, remaining, reset_after)

            reset_after = (1.0 - bucket.tokens) / self.rate if self.rate > 0 else 1.0
            return RateLimitInfo(False, self.capacity, 0, reset_after)

    def cleanup(self, max_age: float = 3600.0) -> int:
        """Remove stale entries older than *max_age* seconds. Returns count removed."""
        now = time.monotonic()
        with self._lock:
            stale = [k for k, b in self._buckets.items() if now - b.last_refill > max_age]
            for k in stale:
                del self._buckets[k]
        return len(stale)


auth_limiter = RateLimiter(rate=1.0, capacity=5)
_token_limiter: RateLimiter | None = None


def get_token_limiter() -> RateLimiter:
    """Return the token-endpoint limiter, initialized from config on first call."""
    global _token_limiter
    if _token_limiter is None:
        from pocketauth.config import get_settings

        per_minute = get_settings().token_rate_limit_per_minute
        _token_limiter = RateLimiter(rate=per_minute / 60.0, capacity=per_minute)
    return _token_limiter


def reset_token_limiter() -> None:
    """Reset singleton (for testing)."""
    global _token_limiter
    _token_limiter = None
