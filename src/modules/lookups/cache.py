"""Shared short-TTL cache backed by Redis."""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import redis.asyncio as redis

from src.config import settings
from src.modules.lookups.constants import CACHE_PREFIX

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LookupCache:
    """Redis-backed cache for slowly changing reference data.

    Keys are namespaced as ``lookup:{namespace}:{key}``. Values are JSON.
    Nothing here is request-scoped; every entry expires after its TTL.
    """

    def __init__(self, redis_client: redis.Redis | None = None, ttl: int | None = None) -> None:
        self._redis = redis_client
        self._ttl = ttl if ttl is not None else settings.status_cache_ttl

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(settings.redis_url, decode_responses=True)
        return self._redis

    def _make_key(self, namespace: str, key: str) -> str:
        return f"{CACHE_PREFIX}:{namespace}:{key}"

    async def get(self, namespace: str, key: str) -> Any | None:
        client = await self._get_redis()
        raw = await client.get(self._make_key(namespace, key))
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, namespace: str, key: str, value: Any, ttl: int | None = None) -> None:
        client = await self._get_redis()
        await client.set(
            self._make_key(namespace, key),
            json.dumps(value, default=str),
            ex=ttl or self._ttl,
        )

    async def delete(self, namespace: str, key: str) -> None:
        client = await self._get_redis()
        await client.delete(self._make_key(namespace, key))

    async def get_or_set(
        self,
        namespace: str,
        key: str,
        factory: Callable[[], Awaitable[T]],
        ttl: int | None = None,
    ) -> T:
        """Return the cached value, or compute it via ``factory`` and cache it.

        ``None`` results are not cached so a missing row is looked up again
        on the next call.
        """
        cached = await self.get(namespace, key)
        if cached is not None:
            return cached
        value = await factory()
        if value is not None:
            await self.set(namespace, key, value, ttl=ttl)
        return value

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


# Process-wide cache; its client and pool are opened on first use and closed at shutdown
lookup_cache = LookupCache()
