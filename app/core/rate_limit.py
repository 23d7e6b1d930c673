"""
Fixed-window rate limiting for the public scheduling endpoints.

Counters live in a `limits` storage backend so a single instance can keep them
in memory while a multi-instance deployment points RATE_LIMIT_STORAGE_URI at
a shared Redis.
"""
import logging
import math
import time
from typing import Callable, Optional

from fastapi import Depends, Request
from limits import RateLimitItemPerSecond
from limits.storage import Storage, storage_from_string
from limits.strategies import FixedWindowRateLimiter
from pydantic import BaseModel
from slowapi.util import get_remote_address

from app.core.config import settings
from app.core.exceptions import RateLimitedError

logger = logging.getLogger(__name__)


class RateLimitConfig(BaseModel):
    max_requests: int
    window_ms: int


class RateLimitResult(BaseModel):
    success: bool
    remaining: int
    reset_at: float  # epoch seconds

    @property
    def retry_after(self) -> int:
        return max(1, math.ceil(self.reset_at - time.time()))


RATE_LIMITS = {
    "public_form": RateLimitConfig(max_requests=10, window_ms=60_000),
    "public_booking": RateLimitConfig(max_requests=5, window_ms=60_000),
    "public_schedule_view": RateLimitConfig(max_requests=30, window_ms=60_000),
}


class RateLimiter:
    def __init__(self, storage: Optional[Storage] = None, storage_uri: str = "memory://"):
        self.storage = storage or storage_from_string(storage_uri)
        self._strategy = FixedWindowRateLimiter(self.storage)

    @staticmethod
    def _item(config: RateLimitConfig) -> RateLimitItemPerSecond:
        window_seconds = max(1, math.ceil(config.window_ms / 1000))
        return RateLimitItemPerSecond(config.max_requests, window_seconds)

    def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one request against `key` and report whether it fits in the window."""
        item = self._item(config)
        allowed = self._strategy.hit(item, key)
        reset_at, remaining = self._strategy.get_window_stats(item, key)
        return RateLimitResult(
            success=allowed,
            remaining=max(0, remaining) if allowed else 0,
            reset_at=reset_at,
        )

    def reset(self):
        self.storage.reset()


def get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    global _limiter
    if _limiter is None:
        _limiter = RateLimiter(storage_uri=settings.rate_limit_storage_uri)
    return _limiter


def rate_limit(scope: str, preset: str) -> Callable:
    """
    Build a route dependency that counts the caller's IP under `scope` and
    raises RateLimitedError once the preset window is exhausted.
    """
    config = RATE_LIMITS[preset]

    def _dependency(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> RateLimitResult:
        client_ip = get_client_ip(request)
        result = limiter.check(f"{scope}:{client_ip}", config)
        if not result.success:
            logger.warning(
                "Rate limit exceeded",
                extra={"scope": scope, "client_ip": client_ip, "retry_after": result.retry_after},
            )
            raise RateLimitedError(retry_after=result.retry_after, remaining=result.remaining)
        return result

    return _dependency
