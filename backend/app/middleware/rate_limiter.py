from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request, HTTPException
from redis import asyncio as redis_asyncio
from app import config
import time
import logging

# Redis when REDIS_URL is set, otherwise lightweight in-memory counters so
# the application can still run in development.

logger = logging.getLogger(__name__)


class RateLimiterMiddleware(BaseHTTPMiddleware):
    """Simple IP-based rate limiter.

    Production – uses Redis for distributed rate limiting (set REDIS_URL).
    Development – falls back to in-process dictionary so devs don't have to
    run Redis locally.
    """

    _local_cache: dict[str, list[float]] = {}
    _redis_client = None
    _redis_unavailable: bool = False  # Cache Redis health to avoid log spam

    @classmethod
    def _redis(cls):
        if cls._redis_client is None:
            cls._redis_client = redis_asyncio.from_url(config.REDIS_URL)
        return cls._redis_client

    async def dispatch(self, request: Request, call_next):
        if config.DISABLE_RATE_LIMIT:
            return await call_next(request)

        # Do not rate-limit CORS pre-flight requests which are always OPTIONS
        if request.method == "OPTIONS":
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        limit = config.RATE_LIMIT
        window_seconds = config.RATE_LIMIT_WINDOW

        # ------------------------------------------------------------------
        # Redis-backed strategy (preferred for multi-instance deployments)
        # ------------------------------------------------------------------
        if config.REDIS_URL and not RateLimiterMiddleware._redis_unavailable:
            try:
                redis = self._redis()
                key = f"rate:{client_ip}"

                current = await redis.get(key)
                over_limit = current is not None and int(current) >= limit

                if not over_limit:
                    # Use pipeline (transaction) for atomicity
                    async with redis.pipeline(transaction=True) as tx:
                        tx.incr(key)
                        tx.expire(key, window_seconds)
                        await tx.execute()

            except Exception as exc:  # Redis down/etc.
                logger.warning(
                    "RateLimiter: Redis unavailable – falling back to in-memory store (%s)",
                    exc,
                )
                # Mark Redis as unavailable for the remainder of the process lifetime.
                RateLimiterMiddleware._redis_unavailable = True
            else:
                if over_limit:
                    raise HTTPException(status_code=429, detail="Too Many Requests")
                return await call_next(request)

        # ------------------------------------------------------------------
        # In-memory fallback (single-instance / development only)
        # ------------------------------------------------------------------
        now = time.time()
        window_start = now - window_seconds

        # Purge old timestamps for this IP
        timestamps = self._local_cache.get(client_ip, [])
        timestamps = [ts for ts in timestamps if ts > window_start]

        if len(timestamps) >= limit:
            raise HTTPException(status_code=429, detail="Too Many Requests")

        timestamps.append(now)
        self._local_cache[client_ip] = timestamps

        return await call_next(request)
