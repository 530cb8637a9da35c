"""
Redis Storage Backend.

Production-ready storage backend using Redis for persistence and locking.
Requires redis-py package.
"""

from __future__ import annotations

import json
import os
import uuid
from decimal import Decimal
from typing import Any

from agentpay.storage.base import StorageBackend, register_storage_backend


class RedisStorage(StorageBackend):
    """
    Redis storage backend.

    Uses Redis for persistent storage. Suitable for production and for
    sharing intent locks between several engine processes.
    Requires: pip install redis
    """

    def __init__(
        self,
        redis_url: str | None = None,
        prefix: str = "agentpay",
    ) -> None:
        """
        Initialize Redis storage.

        Args:
            redis_url: Redis connection URL (or from AGENTPAY_REDIS_URL env)
            prefix: Key prefix for all storage keys
        """
        self._redis_url = redis_url or os.environ.get(
            "AGENTPAY_REDIS_URL",
            "redis://localhost:6379/0",
        )
        self._prefix = prefix
        self._client = None

    def _get_client(self):
        """Lazy-load Redis client."""
        if self._client is None:
            try:
                import redis.asyncio as redis
            except ImportError:
                raise ImportError(
                    "redis package required for RedisStorage. Install with: pip install agentpay[redis]"
                ) from None
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    def _make_key(self, collection: str, key: str) -> str:
        """Create Redis key from collection and key."""
        return f"{self._prefix}:{collection}:{key}"

    def _index_key(self, collection: str) -> str:
        return f"{self._prefix}:{collection}:_index"

    def _counter_key(self, collection: str, key: str) -> str:
        return f"{self._prefix}:counters:{collection}:{key}"

    async def save(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
    ) -> None:
        """Save data to Redis."""
        client = self._get_client()
        await client.set(self._make_key(collection, key), json.dumps(data))
        await client.sadd(self._index_key(collection), key)

    async def get(
        self,
        collection: str,
        key: str,
    ) -> dict[str, Any] | None:
        """Get data from Redis."""
        client = self._get_client()
        data = await client.get(self._make_key(collection, key))

        if data is None:
            return None
        return json.loads(data)

    async def delete(
        self,
        collection: str,
        key: str,
    ) -> bool:
        """Delete data (or a counter) from Redis."""
        client = self._get_client()
        result = await client.delete(
            self._make_key(collection, key),
            self._counter_key(collection, key),
        )
        await client.srem(self._index_key(collection), key)
        return result > 0

    async def atomic_add(
        self,
        collection: str,
        key: str,
        amount: str,
    ) -> str:
        """Atomically add amount."""
        client = self._get_client()
        counter_key = self._counter_key(collection, key)
        delta = Decimal(amount)

        # INCRBY keeps integer counters exact; INCRBYFLOAT only for fractions
        if delta == delta.to_integral_value():
            new_val = await client.incrby(counter_key, int(delta))
        else:
            new_val = await client.incrbyfloat(counter_key, float(delta))
        return str(new_val)

    # Lua script for safe lock release: only delete if token matches
    _RELEASE_LOCK_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    async def acquire_lock(
        self,
        key: str,
        ttl: int = 30,
    ) -> str | None:
        """
        Acquire a distributed lock with ownership token (Redis SET NX).

        Args:
            key: Lock key (e.g. "lock:intent:123")
            ttl: TTL in seconds

        Returns:
            Unique ownership token if acquired, None if already held
        """
        client = self._get_client()
        redis_key = f"{self._prefix}:locks:{key}"
        token = str(uuid.uuid4())

        result = await client.set(redis_key, token, nx=True, ex=ttl)
        if result:
            return token
        return None

    async def release_lock(
        self,
        key: str,
        token: str | None = None,
    ) -> bool:
        """
        Release a lock safely using Lua script.

        Only deletes the key if the stored value matches our token,
        preventing accidental release of another caller's lock.
        """
        client = self._get_client()
        redis_key = f"{self._prefix}:locks:{key}"

        if token:
            result = await client.eval(self._RELEASE_LOCK_SCRIPT, 1, redis_key, token)
            return int(result) > 0

        result = await client.delete(redis_key)
        return result > 0

    async def query(self, collection: str) -> list[dict[str, Any]]:
        """All records of a collection."""
        client = self._get_client()
        keys = await client.smembers(self._index_key(collection))

        results = []
        for key in keys:
            data = await self.get(collection, key)
            if data is None:
                continue
            data["_key"] = key
            results.append(data)
        return results

    async def count(self, collection: str) -> int:
        """Count records in collection."""
        client = self._get_client()
        return await client.scard(self._index_key(collection))

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None


# Register backend
register_storage_backend("redis", RedisStorage)
