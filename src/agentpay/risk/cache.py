"""
Risk Score Cache - most recent risk score per recipient.

Bounded LRU: once `max_entries` recipients are cached, the least recently
written recipient is evicted. Entries are replaced whole, never mutated.
"""

from __future__ import annotations

from collections import OrderedDict

from agentpay.core.logging import get_logger

logger = get_logger("risk.cache")


class RiskScoreCache:
    """Recipient -> last risk score, most-recent-wins."""

    def __init__(self, max_entries: int = 1_000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._scores: OrderedDict[str, int] = OrderedDict()

    @staticmethod
    def _key(recipient: str) -> str:
        return recipient.strip().lower()

    def get(self, recipient: str) -> int | None:
        """Last score recorded for a recipient, or None."""
        return self._scores.get(self._key(recipient))

    def set(self, recipient: str, score: int) -> None:
        key = self._key(recipient)
        self._scores[key] = score
        self._scores.move_to_end(key)
        while len(self._scores) > self._max_entries:
            evicted, _ = self._scores.popitem(last=False)
            logger.debug(f"Evicted cached risk score for {evicted}")

    def invalidate(self, recipient: str) -> None:
        self._scores.pop(self._key(recipient), None)

    def __len__(self) -> int:
        return len(self._scores)

    def __contains__(self, recipient: object) -> bool:
        return isinstance(recipient, str) and self._key(recipient) in self._scores


__all__ = ["RiskScoreCache"]
