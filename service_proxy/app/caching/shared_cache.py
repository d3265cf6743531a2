"""
Shared (Redis) cache tier adapter.
"""

import math
from typing import Optional, Protocol

import redis.asyncio as redis

from shared.logging import get_logger


class SharedCacheClient(Protocol):
    """Minimal key-value contract the tier manager relies on."""

    async def get(self, key: str) -> Optional[bytes]: ...

    async def set(self, key: str, value: bytes, ttl: float) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def clear_all(self) -> int: ...


class RedisSharedCache:
    """Redis-backed shared tier.

    Calls raise on any Redis or socket failure; absorbing those failures is
    the tier manager's job. The client is created lazily, so constructing
    the adapter never touches the network.
    """

    def __init__(
        self,
        redis_url: str,
        *,
        key_prefix: str = "proxy:",
        socket_timeout: float = 1.0,
        client: Optional[redis.Redis] = None,
    ):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.socket_timeout = socket_timeout
        self.logger = get_logger("proxy.cache.shared")
        self._redis: Optional[redis.Redis] = client

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                socket_connect_timeout=self.socket_timeout,
                socket_timeout=self.socket_timeout,
                health_check_interval=30,
            )
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Optional[bytes]:
        redis_client = await self._get_redis()
        value = await redis_client.get(self._make_key(key))
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    async def set(self, key: str, value: bytes, ttl: float) -> None:
        redis_client = await self._get_redis()
        # SETEX takes whole seconds; round up so entries never expire early
        await redis_client.setex(self._make_key(key), max(1, math.ceil(ttl)), value)

    async def delete(self, key: str) -> None:
        redis_client = await self._get_redis()
        await redis_client.delete(self._make_key(key))

    async def clear_all(self) -> int:
        """Delete every key in this proxy's namespace."""
        redis_client = await self._get_redis()
        removed = 0
        batch = []
        async for cache_key in redis_client.scan_iter(match=f"{self.key_prefix}*", count=500):
            batch.append(cache_key)
            if len(batch) >= 500:
                removed += await redis_client.delete(*batch)
                batch = []
        if batch:
            removed += await redis_client.delete(*batch)

        self.logger.info("Cleared shared cache namespace", prefix=self.key_prefix, keys_count=removed)
        return removed

    async def ping(self) -> bool:
        redis_client = await self._get_redis()
        return bool(await redis_client.ping())

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
