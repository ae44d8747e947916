"""
Rate Limiting Middleware

Per-tenant token bucket kept in Redis, so every service instance draws
from the same bucket.

The bucket key comes from the bearer token's tenant (super admins share a
"platform" bucket). Requests without a usable token are keyed by client
address. The token is only decoded here, not trusted: authentication still
happens in the route dependencies.

If Redis is unreachable the limiter lets requests through.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from typing import Optional, Tuple
import redis
import time
import logging

from taskboard.config import get_settings
from taskboard.core.exceptions import AuthenticationError
from taskboard.core.identity import resolve
from taskboard.utils.logging import log_security_event

logger = logging.getLogger(__name__)
settings = get_settings()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Token bucket rate limiter per tenant."""

    excluded_paths = (
        "/docs",
        "/redoc",
        "/openapi.json",
        "/health",
    )

    def __init__(self, app, redis_client: Optional[redis.Redis] = None,
                 rate_per_minute: Optional[int] = None, burst: Optional[int] = None):
        super().__init__(app)
        self.rate_per_minute = rate_per_minute or settings.RATE_LIMIT_PER_MINUTE
        self.burst = burst or settings.RATE_LIMIT_BURST

        if redis_client is not None:
            self.redis_client = redis_client
            self.redis_available = True
            return

        try:
            self.redis_client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5
            )
            self.redis_client.ping()
            self.redis_available = True
            logger.info("Redis connection established for rate limiting")
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.error(f"Redis connection failed, rate limiting disabled: {e}")
            self.redis_client = None
            self.redis_available = False

    async def dispatch(self, request: Request, call_next):
        if not self.redis_available or request.url.path.startswith(self.excluded_paths):
            return await call_next(request)

        bucket = self._bucket_key(request)
        allowed, retry_after = self._check_rate_limit(bucket)

        if not allowed:
            log_security_event("rate_limit_exceeded", {"reason": bucket, "path": request.url.path}, logger)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "detail": "Rate limit exceeded. Please try again later.",
                    "type": "rate_limit_exceeded",
                },
                headers={"Retry-After": str(retry_after)}
            )

        return await call_next(request)

    def _bucket_key(self, request: Request) -> str:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            try:
                principal = resolve(auth_header[len("Bearer "):])
                return f"tenant:{principal.tenant_id or 'platform'}"
            except AuthenticationError:
                pass
        client = request.client.host if request.client else "unknown"
        return f"client:{client}"

    def _check_rate_limit(self, bucket: str) -> Tuple[bool, int]:
        """
        Take one token from ``bucket``.

        Returns (allowed, retry_after_seconds). Tokens refill at
        rate_per_minute / 60 per second up to ``burst``.
        """
        key = f"rate_limit:{bucket}"
        key_timestamp = f"{key}:timestamp"
        refill_per_second = self.rate_per_minute / 60.0

        try:
            current_tokens = self.redis_client.get(key)
            last_update = self.redis_client.get(key_timestamp)
            now = time.time()

            if current_tokens is None:
                self.redis_client.setex(key, 60, self.burst - 1)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            last_update = float(last_update) if last_update else now
            tokens = min(self.burst, float(current_tokens) + (now - last_update) * refill_per_second)

            if tokens >= 1:
                self.redis_client.setex(key, 60, tokens - 1)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            retry_after = int((1 - tokens) / refill_per_second) + 1
            return False, retry_after

        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            return True, 0
