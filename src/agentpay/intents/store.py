"""
IntentStore - keyed persistence for payment intents.

Intents are stored as plain dicts in a StorageBackend collection. The store is
bounded: once `max_intents` intents exist, adding one evicts the oldest
terminal (completed or failed) intent. If every stored intent is still live,
the add fails with StorageError.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from agentpay.core.exceptions import StorageError
from agentpay.core.logging import get_logger
from agentpay.core.types import PaymentIntent

if TYPE_CHECKING:
    from agentpay.storage.base import StorageBackend

logger = get_logger("intents.store")


class IntentStore:
    """
    Payment intent persistence.

    Every read returns a freshly deserialized PaymentIntent, so callers never
    share state with the store or with each other.
    """

    COLLECTION = "payment_intents"
    COUNTERS = "counters"
    SEQUENCE_KEY = "intent_sequence"

    def __init__(self, storage: StorageBackend, max_intents: int = 10_000) -> None:
        """
        Initialize with storage backend.

        Args:
            storage: Storage backend (Redis/Memory)
            max_intents: Capacity before terminal intents are evicted
        """
        if max_intents < 1:
            raise ValueError("max_intents must be at least 1")
        self._storage = storage
        self._max_intents = max_intents
        self._add_lock = asyncio.Lock()

    @property
    def max_intents(self) -> int:
        return self._max_intents

    def _make_key(self, intent_id: str) -> str:
        """Create storage key for intent."""
        return f"intent:{intent_id}"

    async def _next_sequence(self) -> int:
        value = await self._storage.atomic_add(self.COUNTERS, self.SEQUENCE_KEY, "1")
        return int(Decimal(value))

    async def _records(self) -> list[dict[str, Any]]:
        return await self._storage.query(self.COLLECTION)

    async def _make_room(self) -> None:
        records = await self._records()
        excess = len(records) - self._max_intents + 1
        if excess <= 0:
            return

        terminal = sorted(
            (r for r in records if r.get("status") in ("completed", "failed")),
            key=lambda r: int(r.get("sequence", 0)),
        )
        if len(terminal) < excess:
            raise StorageError(
                f"Intent store is full ({self._max_intents} intents, none of them terminal)",
                details={"max_intents": self._max_intents},
            )

        for record in terminal[:excess]:
            await self._storage.delete(self.COLLECTION, self._make_key(record["id"]))
            logger.debug(f"Evicted terminal intent {record['id']}")

    async def add(self, intent: PaymentIntent) -> PaymentIntent:
        """
        Store a new intent and assign its insertion sequence.

        Raises:
            StorageError: If the store is full or unavailable
        """
        async with self._add_lock:
            try:
                await self._make_room()
                intent.sequence = await self._next_sequence()
                await self._storage.save(self.COLLECTION, self._make_key(intent.id), intent.to_dict())
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Could not store intent {intent.id}: {e}") from e
        return intent

    async def save(self, intent: PaymentIntent) -> None:
        """
        Persist an existing intent.

        Raises:
            StorageError: If the backend is unavailable
        """
        try:
            await self._storage.save(self.COLLECTION, self._make_key(intent.id), intent.to_dict())
        except Exception as e:
            raise StorageError(f"Could not save intent {intent.id}: {e}") from e

    async def get(self, intent_id: str) -> PaymentIntent | None:
        """Get intent by ID."""
        try:
            data = await self._storage.get(self.COLLECTION, self._make_key(intent_id))
        except Exception as e:
            raise StorageError(f"Could not load intent {intent_id}: {e}") from e
        if not data:
            return None
        return PaymentIntent.from_dict(data)

    async def all(self) -> list[PaymentIntent]:
        """All stored intents, oldest first."""
        try:
            records = await self._records()
        except Exception as e:
            raise StorageError(f"Could not list intents: {e}") from e
        intents = [PaymentIntent.from_dict(r) for r in records]
        intents.sort(key=lambda i: i.sequence)
        return intents

    async def list_recent(self, limit: int) -> list[PaymentIntent]:
        """Up to `limit` intents, most recently created first."""
        if limit <= 0:
            return []
        intents = await self.all()
        intents.reverse()
        return intents[:limit]

    async def count(self) -> int:
        try:
            return await self._storage.count(self.COLLECTION)
        except Exception as e:
            raise StorageError(f"Could not count intents: {e}") from e
