"""
In-Memory Storage Backend.

Default storage backend that keeps all data in memory.
Suitable for development and testing, but not for production.
"""

from __future__ import annotations

import time
import uuid
from copy import deepcopy
from decimal import Decimal
from typing import Any

from agentpay.storage.base import StorageBackend, register_storage_backend


class InMemoryStorage(StorageBackend):
    """
    In-memory storage backend.

    Stores all data in Python dicts. Data is lost when process ends.
    None of the coroutines suspend, so every operation is atomic with respect
    to other tasks on the same event loop.
    """

    def __init__(self) -> None:
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self._counters: dict[str, dict[str, str]] = {}
        self._locks: dict[str, tuple[str, float]] = {}

    def _ensure_collection(self, collection: str) -> dict[str, dict[str, Any]]:
        """Ensure collection exists and return it."""
        if collection not in self._data:
            self._data[collection] = {}
        return self._data[collection]

    async def save(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
    ) -> None:
        """Save data to memory."""
        coll = self._ensure_collection(collection)
        coll[key] = deepcopy(data)

    async def get(
        self,
        collection: str,
        key: str,
    ) -> dict[str, Any] | None:
        """Get data from memory."""
        coll = self._ensure_collection(collection)
        data = coll.get(key)
        return deepcopy(data) if data else None

    async def delete(
        self,
        collection: str,
        key: str,
    ) -> bool:
        """Delete data (or a counter) from memory."""
        coll = self._ensure_collection(collection)
        counter = self._counters.get(collection, {}).pop(key, None)
        if key in coll:
            del coll[key]
            return True
        return counter is not None

    async def query(self, collection: str) -> list[dict[str, Any]]:
        """All records of a collection, in insertion order."""
        coll = self._ensure_collection(collection)

        results = []
        for key, data in coll.items():
            result = deepcopy(data)
            result["_key"] = key
            results.append(result)
        return results

    async def count(self, collection: str) -> int:
        """Count records in collection."""
        return len(self._ensure_collection(collection))

    async def atomic_add(
        self,
        collection: str,
        key: str,
        amount: str,
    ) -> str:
        """Atomically add amount."""
        # Counters live apart from documents so query() never sees raw strings
        counters = self._counters.setdefault(collection, {})
        current = Decimal(counters.get(key, "0"))
        new_val = current + Decimal(amount)

        # Stored as string to match Redis behavior
        counters[key] = str(new_val)
        return str(new_val)

    async def acquire_lock(
        self,
        key: str,
        ttl: int = 30,
    ) -> str | None:
        """Acquire lock (simple in-memory implementation)."""
        now = time.time()

        held = self._locks.get(key)
        if held is not None and now < held[1]:
            return None

        token = str(uuid.uuid4())
        self._locks[key] = (token, now + ttl)
        return token

    async def release_lock(
        self,
        key: str,
        token: str | None = None,
    ) -> bool:
        """Release lock."""
        held = self._locks.get(key)
        if held is None:
            return False
        if token is not None and held[0] != token:
            return False
        del self._locks[key]
        return True


# Register as default backend
register_storage_backend("memory", InMemoryStorage)
