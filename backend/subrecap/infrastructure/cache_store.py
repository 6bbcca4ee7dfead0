"""Aggregate Cache Stores: Redis and in-process adapters behind one Protocol.

Invariants:
    - Values are the JSON form of AggregateCacheEntry.to_dict()
    - write() fully replaces any prior value (no merge)
    - Every handle is opened by a factory scope and closed on every exit path
    - Redis failures map to CacheStoreError; an undecodable value reads as absent

Design Decisions:
    - One Redis connection per scope, matching the per-run read-then-write usage
    - InMemory store keeps serialized strings, so readers never share objects
      with writers (same observable behaviour as Redis)
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from subrecap.core.errors import CacheStoreError, ErrorContext
from subrecap.core.records import AggregateCacheEntry

logger = logging.getLogger(__name__)


def serialize_entry(entry: AggregateCacheEntry) -> str:
    return json.dumps(entry.to_dict(), ensure_ascii=False)


def deserialize_entry(key: str, raw: str | None) -> AggregateCacheEntry | None:
    if raw is None:
        return None
    try:
        return AggregateCacheEntry.from_dict(json.loads(raw))
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning(
            f"Discarding undecodable cache entry: {e}", extra={"user_id": key},
        )
        return None


# ─── Redis ───────────────────────────────────────────────────────

class RedisAggregateStore:
    """Redis-backed aggregate store (one handle per factory scope)."""

    def __init__(
        self, client: aioredis.Redis, prefix: str = "subrecap:",
        ttl_seconds: int | None = None,
    ):
        self.client = client
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def read(self, key: str) -> AggregateCacheEntry | None:
        try:
            raw = await self.client.get(self._key(key))
        except RedisError as e:
            logger.error(f"Redis get error: {e}", extra={"user_id": key})
            raise CacheStoreError(str(e), "read", ErrorContext(user_id=key))
        return deserialize_entry(key, raw)

    async def write(self, key: str, entry: AggregateCacheEntry) -> None:
        try:
            await self.client.set(
                self._key(key), serialize_entry(entry), ex=self.ttl_seconds,
            )
        except RedisError as e:
            logger.error(f"Redis set error: {e}", extra={"user_id": key})
            raise CacheStoreError(str(e), "write", ErrorContext(user_id=key))

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(self._key(key))
        except RedisError as e:
            logger.error(f"Redis delete error: {e}", extra={"user_id": key})
            raise CacheStoreError(str(e), "delete", ErrorContext(user_id=key))

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError:
            return False


class RedisStoreFactory:
    """Opens a Redis connection per scope and always closes it."""

    def __init__(
        self, url: str, prefix: str = "subrecap:", ttl_seconds: int | None = None,
    ):
        self.url = url
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds

    @asynccontextmanager
    async def __call__(self) -> AsyncIterator[RedisAggregateStore]:
        client = aioredis.from_url(self.url, decode_responses=True)
        try:
            yield RedisAggregateStore(client, self.prefix, self.ttl_seconds)
        finally:
            await client.aclose()

    async def health_check(self) -> bool:
        """Check Redis connectivity (for readiness probes)."""
        async with self() as store:
            return await store.ping()


# ─── In-memory ───────────────────────────────────────────────────

class InMemoryAggregateStore:
    """Process-local aggregate store for development and tests."""

    def __init__(self):
        self._values: dict[str, str] = {}

    async def read(self, key: str) -> AggregateCacheEntry | None:
        return deserialize_entry(key, self._values.get(key))

    async def write(self, key: str, entry: AggregateCacheEntry) -> None:
        self._values[key] = serialize_entry(entry)

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)


class InMemoryStoreFactory:
    """Scoped access to one shared InMemoryAggregateStore."""

    def __init__(self, store: InMemoryAggregateStore | None = None):
        self.store = store or InMemoryAggregateStore()

    @asynccontextmanager
    async def __call__(self) -> AsyncIterator[InMemoryAggregateStore]:
        yield self.store

    async def health_check(self) -> bool:
        return True
