"""
Cache Service
Key-value cache port with JSON values and optional expiry, backed by Redis.

Keys follow the ``{namespace}:{id}`` convention (e.g. ``class:42``). Anything
writing class entries outside this service must use the same keys to stay
coherent with it.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

import redis.asyncio as aioredis

from class_service.core.logger import logger


def cache_key(namespace: str, entity_id: Any) -> str:
    return f"{namespace}:{entity_id}"


def _json_default(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class ICacheService(ABC):
    """Abstract cache port"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss"""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store a value; no expiry unless ttl_seconds is given"""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a key; True if it existed"""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set an expiry on an existing key; False if the key does not exist"""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern; returns the number deleted"""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


class RedisCacheService(ICacheService):
    """Redis implementation of the cache port (redis.asyncio)"""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisCacheService":
        client = aioredis.from_url(redis_url, decode_responses=True, encoding="utf-8")
        return cls(client)

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.client.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Ignoring undecodable cache entry {key}", metadata={"cacheKey": key})
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        payload = json.dumps(value, default=_json_default)
        if ttl_seconds:
            await self.client.set(key, payload, ex=ttl_seconds)
        else:
            await self.client.set(key, payload)

    async def delete(self, key: str) -> bool:
        return await self.client.delete(key) > 0

    async def exists(self, key: str) -> bool:
        return await self.client.exists(key) > 0

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return bool(await self.client.expire(key, ttl_seconds))

    async def delete_pattern(self, pattern: str) -> int:
        keys = [key async for key in self.client.scan_iter(match=pattern, count=500)]
        if not keys:
            return 0
        deleted = await self.client.delete(*keys)
        logger.info(f"Deleted {deleted} cache keys", metadata={"pattern": pattern})
        return deleted

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()
