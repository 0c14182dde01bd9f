"""
api/limiter.py -- Request-volume guards.

Two limiters share one storage backend (RATE_LIMIT_STORAGE_URI, default
in-process memory; point it at redis:// to share counters across workers):

  limiter            -- slowapi per-route limits applied with @limiter.limit()
                        (POST /auth/login brute-force guard, keyed by IP).
  WriteRateLimiter   -- global moving-window cap on state-changing API calls,
                        keyed by identity when a valid token is present and by
                        client address otherwise. Installed as HTTP middleware
                        in api/main.py.

Using a single shared slowapi instance ensures all routes share the same
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.
"""

from __future__ import annotations

import logging
import time

from fastapi import Request
from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address

from auth.dependencies import try_get_current_user
from core.config import get_settings

logger = logging.getLogger("garage.limiter")

_settings = get_settings()

limiter = Limiter(key_func=get_remote_address, storage_uri=_settings.rate_limit_storage_uri)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

# Writes under these prefixes are never counted. Login has its own limit.
EXEMPT_PREFIXES = (
    "/api/auth",
    "/api/docs",
    "/api/openapi.json",
    "/api/health",
    "/api/version",
)


class WriteRateLimiter:
    """Moving-window limiter for mutating /api requests.

    Usage:
        write_limiter = WriteRateLimiter(max_requests=300, window_seconds=900)
        if not write_limiter.allow(request):
            ...  # reply 429
    """

    def __init__(self, max_requests: int, window_seconds: int, storage_uri: str = "memory://") -> None:
        self.item = RateLimitItemPerSecond(max_requests, window_seconds)
        self.storage = storage_from_string(storage_uri)
        self.strategy = MovingWindowRateLimiter(self.storage)

    @staticmethod
    def is_exempt(request: Request) -> bool:
        path = request.url.path
        if request.method in SAFE_METHODS:
            return True
        if not path.startswith("/api/"):
            return True
        return path.startswith(EXEMPT_PREFIXES)

    @staticmethod
    def key_for(request: Request) -> str:
        identity = try_get_current_user(request)
        if identity is not None:
            return f"user:{identity.id}"
        return f"ip:{get_remote_address(request)}"

    def allow(self, request: Request) -> bool:
        """Count this request against its key; False once the window is full."""
        if self.is_exempt(request):
            return True
        key = self.key_for(request)
        allowed = self.strategy.hit(self.item, "writes", key)
        if not allowed:
            logger.warning("write limit exceeded key=%s path=%s", key, request.url.path)
        return allowed

    def retry_after(self, request: Request) -> int:
        """Seconds until the oldest counted request in the window expires."""
        reset_at, _remaining = self.strategy.get_window_stats(self.item, "writes", self.key_for(request))
        return max(int(reset_at - time.time()), 1)

    def reset(self) -> None:
        self.storage.reset()
