"""Fixed-window write rate limiter on Redis INCR + EXPIRE."""

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from src.shared.errors import RateLimitError

logger = structlog.get_logger()


class WriteRateLimiter:
    def __init__(
        self,
        client: aioredis.Redis | None,
        max_requests: int = 30,
        window_seconds: int = 60,
        enabled: bool = True,
        prefix: str = "rl:write",
    ) -> None:
        self._client = client
        self._max = max_requests
        self._window = window_seconds
        self._enabled = enabled
        self._prefix = prefix

    async def hit(self, client_id: str) -> int:
        """Count one write for ``client_id``; raise RateLimitError over quota.

        Returns the count in the current window, or 0 when limiting is off
        or Redis is unreachable.
        """
        if not self._enabled or self._client is None:
            return 0

        key = f"{self._prefix}:{client_id}"
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                count, ttl = await pipe.incr(key).ttl(key).execute()
            # New keys, and keys whose EXPIRE failed on an earlier hit, have no TTL
            if ttl < 0:
                await self._client.expire(key, self._window)
                ttl = self._window
        except (RedisError, OSError):
            logger.warning("rate_limit_store_unavailable", client_id=client_id)
            return 0

        if count > self._max:
            retry_after = ttl or self._window
            logger.warning("rate_limit_exceeded", client_id=client_id, count=count)
            raise RateLimitError(
                "Too many write requests, please try again later",
                retry_after=retry_after,
                details={"limit": self._max, "window_seconds": self._window},
            )
        return count
