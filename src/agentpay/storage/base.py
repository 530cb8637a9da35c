"""
Abstract Storage Backend for AgentPay.

Keyed documents, counters and locks behind the intent store, the intent locks
and the circuit breakers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    Records live in named collections; counters are kept apart from records
    so `query` and `count` only ever see documents.
    """

    @abstractmethod
    async def save(self, collection: str, key: str, data: dict[str, Any]) -> None:
        """
        Save a record, replacing any existing one.

        Args:
            collection: Collection name
            key: Unique key for the record
            data: Data to store (must be JSON-serializable)
        """
        ...

    @abstractmethod
    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        """Get a record, or None if not found."""
        ...

    @abstractmethod
    async def delete(self, collection: str, key: str) -> bool:
        """
        Delete a record or counter.

        Returns:
            True if deleted, False if not found
        """
        ...

    @abstractmethod
    async def query(self, collection: str) -> list[dict[str, Any]]:
        """All records of a collection, each with its key under "_key"."""
        ...

    @abstractmethod
    async def count(self, collection: str) -> int:
        ...

    @abstractmethod
    async def atomic_add(self, collection: str, key: str, amount: str) -> str:
        """
        Atomically add amount to a counter.

        Args:
            collection: Collection name
            key: Counter key
            amount: Amount to add (as decimal string)

        Returns:
            New total value as string
        """
        ...

    @abstractmethod
    async def acquire_lock(self, key: str, ttl: int = 30) -> str | None:
        """
        Acquire a mutex without waiting.

        Args:
            key: Lock key (e.g. "lock:intent:123")
            ttl: Seconds before an abandoned lock expires

        Returns:
            Ownership token if acquired, None if already held
        """
        ...

    @abstractmethod
    async def release_lock(self, key: str, token: str | None = None) -> bool:
        """
        Release a mutex.

        Only the holder of `token` may release it.

        Returns:
            True if released
        """
        ...

    async def close(self) -> None:
        return None


# Storage backend registry for dependency injection
_STORAGE_BACKENDS: dict[str, type[StorageBackend]] = {}


def register_storage_backend(name: str, backend_class: type[StorageBackend]) -> None:
    """Register a storage backend by name."""
    _STORAGE_BACKENDS[name] = backend_class


def get_storage_backend(name: str) -> type[StorageBackend] | None:
    return _STORAGE_BACKENDS.get(name)


def list_storage_backends() -> list[str]:
    return list(_STORAGE_BACKENDS.keys())
