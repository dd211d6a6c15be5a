"""Redis-backed response cache for read endpoints.

Redis is best-effort: any error or slow reply is logged and treated as a
miss. After a connection failure the cache switches itself off for a short
while rather than reconnecting on every request.
"""

import asyncio
import json
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import redis.asyncio as aioredis
import structlog
from fastapi.encoders import jsonable_encoder
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from starlette.requests import Request

logger = structlog.get_logger()


class ResponseCache:
    def __init__(
        self,
        client: aioredis.Redis | None,
        prefix: str = "cache",
        ttl_seconds: int = 60,
        retry_seconds: int = 30,
        enabled: bool = True,
        operation_timeout: float = 0.25,
    ) -> None:
        self._client = client
        self._prefix = prefix
        self._ttl = ttl_seconds
        self._retry_seconds = retry_seconds
        self._enabled = enabled
        self._operation_timeout = operation_timeout
        self._disabled_until = 0.0
        # Bumped by every invalidation; stores computed under an older value are dropped
        self._generation = 0
        self._pending: set[asyncio.Task] = set()

    @property
    def available(self) -> bool:
        return (
            self._enabled
            and self._client is not None
            and time.monotonic() >= self._disabled_until
        )

    @property
    def generation(self) -> int:
        return self._generation

    def build_key(
        self,
        path: str,
        query: Mapping[str, str] | None = None,
        user: str | None = None,
    ) -> str:
        key = f"{self._prefix}:{path}"
        if query:
            key += ":" + "&".join(f"{k}={query[k]}" for k in sorted(query))
        if user:
            key += f":user:{user}"
        return key

    async def _call(self, awaitable: Awaitable[Any]) -> Any:
        async with asyncio.timeout(self._operation_timeout):
            return await awaitable

    def _on_error(self, op: str, key: str, exc: Exception) -> None:
        # builtin TimeoutError is an OSError, so slow replies trip the circuit too
        if isinstance(exc, RedisConnectionError | RedisTimeoutError | OSError):
            self._disabled_until = time.monotonic() + self._retry_seconds
            logger.warning(
                "cache_unavailable", op=op, key=key, retry_in_seconds=self._retry_seconds
            )
        else:
            logger.warning("cache_error", op=op, key=key, error=str(exc))

    async def get(self, key: str) -> Any | None:
        if not self.available:
            return None
        try:
            raw = await self._call(self._client.get(key))
        except (RedisError, OSError) as exc:
            self._on_error("get", key, exc)
            return None
        if raw is None:
            logger.debug("cache_miss", key=key)
            return None
        logger.debug("cache_hit", key=key)
        return json.loads(raw)

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
        generation: int | None = None,
    ) -> bool:
        """Store ``value``. With ``generation``, skip or undo the store if an
        invalidation happened since that generation was read."""
        if not self.available:
            return False
        if generation is not None and generation != self._generation:
            logger.debug("cache_store_skipped_stale", key=key)
            return False
        try:
            await self._call(
                self._client.setex(key, ttl or self._ttl, json.dumps(value, default=str))
            )
            if generation is not None and generation != self._generation:
                await self._call(self._client.delete(key))
                logger.debug("cache_store_undone_stale", key=key)
                return False
            return True
        except (RedisError, OSError) as exc:
            self._on_error("set", key, exc)
            return False

    def set_in_background(self, key: str, value: Any, generation: int | None = None) -> None:
        task = asyncio.create_task(self.set(key, value, generation=generation))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def invalidate(self, *patterns: str) -> int:
        """Delete every key under ``<prefix>:<pattern>`` for each pattern."""
        self._generation += 1
        if not self.available:
            return 0
        deleted = 0
        for pattern in patterns:
            full = f"{self._prefix}:{pattern}"
            try:
                keys = await self._call(self._client.keys(full))
                if keys:
                    deleted += await self._call(self._client.delete(*keys))
            except (RedisError, OSError) as exc:
                self._on_error("invalidate", full, exc)
                break
        if deleted:
            logger.debug("cache_invalidated", patterns=list(patterns), deleted=deleted)
        return deleted

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._call(self._client.ping()))
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        await self.drain()
        if self._client is not None:
            await self._client.aclose()


async def cached_response(
    cache: ResponseCache | None,
    request: Request,
    compute: Callable[[], Awaitable[Any]],
    user: str | None = None,
) -> Any:
    """Serve a GET from cache, or compute it and store the result behind the response."""
    if cache is None or not cache.available:
        return await compute()

    key = cache.build_key(request.url.path, request.query_params, user)
    hit = await cache.get(key)
    if hit is not None:
        return hit

    generation = cache.generation
    payload = jsonable_encoder(await compute())
    cache.set_in_background(key, payload, generation)
    return payload
