"""
In-memory fixed-window rate limiting, exposed as FastAPI dependencies.
Counters live in this process; a multi-instance deployment needs a shared
store instead.
"""
import time
from typing import Callable, Optional

import structlog
from fastapi import Request

from scalpel.config import settings
from scalpel.core.errors import RateLimited

log = structlog.get_logger()


class FixedWindowLimiter:

    def __init__(
        self,
        name: str,
        limit: int,
        window_sec: int,
        message: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.limit = limit
        self.window_sec = window_sec
        self.message = message
        # key -> (window start, count)
        self._buckets: dict[str, tuple[float, int]] = {}
        self._clock = clock
        self._next_sweep = clock() + window_sec

    def _sweep(self, now: float) -> None:
        if now < self._next_sweep:
            return
        self._buckets = {k: v for k, v in self._buckets.items() if now - v[0] < self.window_sec}
        self._next_sweep = now + self.window_sec

    def hit(self, key: str) -> tuple[bool, dict]:
        now = self._clock()
        self._sweep(now)
        start, count = self._buckets.get(key, (now, 0))
        if now - start >= self.window_sec:
            start, count = now, 0
        allowed = count < self.limit
        if allowed:
            count += 1
        self._buckets[key] = (start, count)
        reset_in = max(0, int(start + self.window_sec - now))
        return allowed, {"limit": self.limit, "remaining": max(0, self.limit - count), "reset": reset_in}

    def reset(self) -> None:
        self._buckets.clear()

    async def check(self, key: str) -> None:
        allowed, info = self.hit(key)
        if not allowed:
            log.warning("rate_limited", limiter=self.name, key=key)
            raise RateLimited(self.message, retry_after=info["reset"] or self.window_sec)


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


general_limiter = FixedWindowLimiter(
    "general", settings.GENERAL_RATE_LIMIT, settings.GENERAL_RATE_WINDOW_SEC,
    "Too many requests, slow down.",
)
auth_limiter = FixedWindowLimiter(
    "auth", settings.AUTH_RATE_LIMIT, settings.AUTH_RATE_WINDOW_SEC,
    "Too many auth attempts, please try again later.",
)
promo_limiter = FixedWindowLimiter(
    "promo", settings.PROMO_RATE_LIMIT, settings.PROMO_RATE_WINDOW_SEC,
    "Too many promo attempts. Try later.",
)
processing_limiter = FixedWindowLimiter(
    "processing", settings.PROCESSING_RATE_LIMIT, settings.PROCESSING_RATE_WINDOW_SEC,
    "Too many processing requests. Try later.",
)

ALL_LIMITERS = (general_limiter, auth_limiter, promo_limiter, processing_limiter)


async def limit_general(request: Request) -> None:
    await general_limiter.check(client_ip(request))


async def limit_auth(request: Request) -> None:
    await auth_limiter.check(client_ip(request))


async def limit_processing(request: Request) -> None:
    await processing_limiter.check(client_ip(request))
