"""
Intent Lock Service.

Per-intent mutex on top of the storage backend's lock primitive. Acquisition
fails fast: a held lock means another execute is already in progress.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from agentpay.core.logging import get_logger

if TYPE_CHECKING:
    from agentpay.storage.base import StorageBackend

logger = get_logger("intents.lock")


class IntentLockService:
    """
    Service for managing intent locks.

    Works across processes when the storage backend is shared (Redis).
    """

    def __init__(self, storage: StorageBackend, ttl: int = 30) -> None:
        """
        Initialize lock service.

        Args:
            storage: Storage backend (Redis/Memory)
            ttl: Seconds before an abandoned lock expires
        """
        self._storage = storage
        self._ttl = ttl

    @staticmethod
    def lock_key(intent_id: str) -> str:
        return f"lock:intent:{intent_id}"

    async def acquire(self, intent_id: str) -> str | None:
        """
        Try to lock an intent once.

        Returns:
            lock_token (str) if successful, None if already held
        """
        token = await self._storage.acquire_lock(self.lock_key(intent_id), self._ttl)
        if token:
            logger.debug(f"Acquired lock for intent {intent_id} (token: {token[:8]}...)")
        else:
            logger.debug(f"Intent {intent_id} is locked by another execution")
        return token

    async def release(self, intent_id: str, lock_token: str) -> bool:
        """
        Release a previously acquired lock.

        Returns:
            True if released, False if expired or token mismatch
        """
        result = await self._storage.release_lock(self.lock_key(intent_id), lock_token)
        if result:
            logger.debug(f"Released lock for intent {intent_id}")
        else:
            logger.warning(f"Lock for intent {intent_id} was gone before release")
        return result
