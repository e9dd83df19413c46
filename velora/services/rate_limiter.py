"""
Request throttling for the ``/api`` routes.

Two fixed-window counters are kept in Redis per window: one shared by all
callers and one per caller. A signed-in caller is counted by user id, anyone
else by client address. A chat request counts once, when it arrives, however
long its streamed reply takes.

Counters live under ``velora:throttle:<scope>:<window start>`` and expire one
second after their window closes.
"""

import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse

from velora.core.config import Settings
from velora.core.security import resolve_user
from velora.services.redis_cache import RedisCache

logger = logging.getLogger("velora.rate_limit")

KEY_PREFIX = "velora:throttle"


class RateLimiter:
    """
    Fixed-window throttle shared by every worker through Redis.

    With ``fail_closed`` set, requests are refused while Redis cannot be
    reached; otherwise they are let through.
    """

    def __init__(
        self,
        redis_cache: RedisCache,
        window_seconds: int,
        global_limit: int,
        per_identity_limit: int,
        fail_closed: bool = True,
    ):
        self.redis_cache = redis_cache
        self.window_seconds = window_seconds
        self.global_limit = global_limit
        self.per_identity_limit = per_identity_limit
        self.fail_closed = fail_closed

    @classmethod
    def from_settings(cls, settings: Settings, redis_cache: RedisCache) -> "RateLimiter":
        return cls(
            redis_cache=redis_cache,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            global_limit=settings.RATE_LIMIT_GLOBAL_PER_MINUTE,
            per_identity_limit=settings.RATE_LIMIT_PER_USER_PER_MINUTE,
        )

    def counter_keys(self, identity: str, now: float | None = None) -> tuple[str, str]:
        """Keys of the shared and the per-caller counter for the current window."""
        window_start = int(now if now is not None else time.time()) // self.window_seconds * self.window_seconds
        return (
            f"{KEY_PREFIX}:all:{window_start}",
            f"{KEY_PREFIX}:caller:{identity}:{window_start}",
        )

    async def allow(self, identity: str) -> bool:
        """Count one request for ``identity``; False once either limit is exceeded."""
        client = self.redis_cache.client
        if not self.redis_cache.is_available or client is None:
            logger.error("Rate limit store unavailable - %s request", "refusing" if self.fail_closed else "allowing")
            return not self.fail_closed

        shared_key, caller_key = self.counter_keys(identity)
        ttl = self.window_seconds + 1

        try:
            pipe = client.pipeline()
            for key in (shared_key, caller_key):
                pipe.incr(key)
                pipe.expire(key, ttl)
            shared_count, _, caller_count, _ = await pipe.execute()
        except Exception as e:
            logger.error("Rate limit check failed: %s", e)
            return not self.fail_closed

        if shared_count > self.global_limit:
            logger.warning("Global request limit reached (%d/%d)", shared_count, self.global_limit)
            return False
        if caller_count > self.per_identity_limit:
            logger.info("Request limit reached for %s (%d/%d)", identity, caller_count, self.per_identity_limit)
            return False
        return True

    def retry_after(self) -> int:
        """Seconds until the current window ends."""
        return self.window_seconds - int(time.time()) % self.window_seconds


async def rate_limit_middleware(request: Request, call_next):
    """Answer 429 with ``Retry-After`` once the caller runs out of requests."""
    settings: Settings = request.app.state.settings
    if not settings.ENABLE_RATE_LIMITING or not request.url.path.startswith(settings.API_PREFIX):
        return await call_next(request)

    limiter: RateLimiter = request.app.state.rate_limiter
    user_ctx = resolve_user(request.app.state.jwt_service, request.headers.get("Authorization"))
    identity = user_ctx.user_id or (request.client.host if request.client else "unknown")

    if not await limiter.allow(identity):
        return JSONResponse(
            status_code=429,
            content={"detail": "Rate limit exceeded. Please retry later."},
            headers={"Retry-After": str(limiter.retry_after())},
        )

    return await call_next(request)
