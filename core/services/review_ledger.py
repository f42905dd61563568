"""Persisted set of item ids the user decided to keep."""

from __future__ import annotations

from loguru import logger

from core.services.interfaces import LedgerStore


class ReviewLedger:
    """Kept-item history.

    Entries are never mutated and only disappear through `clear()`. Every
    mutation schedules a write of the full set through the backing store.
    """

    def __init__(self, store: LedgerStore) -> None:
        self._store = store
        saved = store.load() or []
        self._ids: set[str] = {str(x) for x in saved}
        logger.info("Review ledger loaded: {} ids", len(self._ids))

    def mark_reviewed(self, item_id: str) -> None:
        """Record `item_id` as kept; repeated calls are no-ops."""
        if item_id in self._ids:
            return
        self._ids.add(item_id)
        self._save()

    def is_reviewed(self, item_id: str) -> bool:
        return item_id in self._ids

    def all_reviewed_ids(self) -> frozenset[str]:
        """Snapshot of every kept id."""
        return frozenset(self._ids)

    def clear(self) -> None:
        """Forget all kept ids. Irreversible."""
        count = len(self._ids)
        self._ids.clear()
        self._save()
        logger.info("Review history cleared ({} ids)", count)

    async def flush(self) -> None:
        await self._store.flush()

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def _save(self) -> None:
        self._store.schedule_write(sorted(self._ids))
