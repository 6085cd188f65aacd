"""Redis-backed implementation of the time-keyed store contract.

Uses redis.asyncio with a bounded connection pool and short socket timeouts
so a dead Redis surfaces as a fast error instead of a hung request.
"""

import logging

import redis.asyncio as redis

from trendwatch.config import get_settings
from trendwatch.store.base import PipelineResult

logger = logging.getLogger(__name__)


class RedisPipeline:
    """Non-transactional Redis pipeline returning ``(error, value)`` pairs."""

    def __init__(self, pipe: redis.client.Pipeline) -> None:
        self._pipe = pipe

    def get(self, key: str) -> None:
        self._pipe.get(key)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._pipe.set(key, value, ex=ttl_seconds)

    async def execute(self) -> list[PipelineResult]:
        # Connection-level failures still raise; only per-command errors are folded in.
        async with self._pipe as pipe:
            raw = await pipe.execute(raise_on_error=False)
        results: list[PipelineResult] = []
        for item in raw:
            if isinstance(item, Exception):
                results.append((item, None))
            else:
                results.append((None, item))
        return results


class RedisStore:
    """Thin async adapter over a ``redis.asyncio.Redis`` client."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_settings(cls) -> "RedisStore":
        """Build a client from REDIS_URL and the configured pool/timeouts."""
        settings = get_settings()
        client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_socket_timeout,
            max_connections=settings.redis_max_connections,
        )
        logger.info("Redis store configured: %s", settings.redis_url)
        return cls(client)

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.set(key, value, ex=ttl_seconds)

    async def keys(self, pattern: str) -> list[str]:
        return list(await self._client.keys(pattern))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._client.delete(*keys))

    def pipeline(self) -> RedisPipeline:
        return RedisPipeline(self._client.pipeline(transaction=False))

    async def ping(self) -> bool:
        """Return True if Redis answers PING, False on any connection error."""
        try:
            return bool(await self._client.ping())
        except redis.RedisError as exc:
            logger.warning("Redis ping failed: %s", exc)
            return False

    async def close(self) -> None:
        await self._client.aclose()
