"""Trash ledger: staged deletions and the all-time deleted log.

The same set of entries serves two purposes. While a batch is under review an
entry means "staged, awaiting confirmation"; after confirmation the media is
gone but the entry stays, so saved-space and deleted-count statistics keep
accumulating. Entries only leave through `restore()` or `reset_all()`.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
import itertools

from loguru import logger

from core.errors import SizeResolutionFailed
from core.models import ItemRef, MediaKind, TrashEntry
from core.services.interfaces import AssetSourceProvider, LedgerStore


class TrashLedger:
    """Persisted record of items swiped for deletion.

    Staging resolves the item size asynchronously. A `restore()` that arrives
    while the size is still resolving revokes the stage: each stage takes a
    token, restore drops it, and a stage only commits while its token is
    current.
    """

    def __init__(self, store: LedgerStore, source: AssetSourceProvider) -> None:
        self._store = store
        self._source = source
        self._entries: dict[str, TrashEntry] = {}
        self._intents: dict[str, int] = {}
        self._tokens = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()
        self._load()

    async def stage(self, item: ItemRef) -> TrashEntry | None:
        """Resolve the size of `item` and add it to the ledger.

        Size failures degrade to 0 bytes. Returns the committed entry, or None
        when a restore or reset for the same id superseded this stage.
        """
        return await self._stage(item, self._begin(item.id))

    def schedule_stage(self, item: ItemRef) -> asyncio.Task:
        """Start staging `item` on the running loop without awaiting it.

        The stage intent is registered before this returns, so a restore
        issued right after still revokes it.
        """
        token = self._begin(item.id)
        task = asyncio.get_running_loop().create_task(self._stage(item, token))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _begin(self, item_id: str) -> int:
        token = next(self._tokens)
        self._intents[item_id] = token
        return token

    async def _stage(self, item: ItemRef, token: int) -> TrashEntry | None:
        staged_at = datetime.now()
        try:
            size = await self._resolve_size(item.id)
        except asyncio.CancelledError:
            if self._intents.get(item.id) == token:
                del self._intents[item.id]
            raise

        if self._intents.get(item.id) != token:
            logger.info("Stage of {} superseded before commit", item.id)
            return None
        del self._intents[item.id]

        entry = TrashEntry(id=item.id, kind=item.kind, size_bytes=size, staged_at=staged_at)
        self._entries[item.id] = entry
        self._save()
        logger.info("Moved to trash: {} {} ({})", item.kind.value, item.id, entry.formatted_size)
        return entry

    def restore(self, item_id: str) -> None:
        """Remove `item_id` from the ledger; absent ids are ignored.

        Also revokes a stage of the same id that has not committed yet.
        """
        revoked = self._intents.pop(item_id, None) is not None
        entry = self._entries.pop(item_id, None)
        if entry is not None:
            self._save()
            logger.info("Restored from trash: {}", item_id)
        elif revoked:
            logger.info("Restore of {} revoked a pending stage", item_id)

    def reset_all(self) -> None:
        """Erase every entry, including cumulative history. Irreversible."""
        count = len(self._entries)
        self._entries.clear()
        self._intents.clear()
        self._save()
        logger.info("Trash statistics reset ({} entries)", count)

    def contains(self, item_id: str) -> bool:
        return item_id in self._entries

    def get(self, item_id: str) -> TrashEntry | None:
        return self._entries.get(item_id)

    def entries(self) -> list[TrashEntry]:
        """All entries, oldest first."""
        return sorted(self._entries.values(), key=lambda e: (e.staged_at, e.id))

    def pending_ids(self) -> frozenset[str]:
        """Ids whose stage is still resolving."""
        return frozenset(self._intents)

    def count_by_kind(self, kind: MediaKind) -> int:
        return sum(1 for e in self._entries.values() if e.kind is kind)

    def size_by_kind(self, kind: MediaKind) -> int:
        return sum(e.size_bytes for e in self._entries.values() if e.kind is kind)

    def total_size(self) -> int:
        return sum(e.size_bytes for e in self._entries.values())

    def total_count(self) -> int:
        return len(self._entries)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def wait_idle(self) -> None:
        """Wait until every scheduled stage has committed or been superseded."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def flush(self) -> None:
        await self.wait_idle()
        await self._store.flush()

    async def _resolve_size(self, item_id: str) -> int:
        try:
            size = int(await self._source.resolve_size(item_id))
        except Exception as ex:  # pylint: disable=broad-exception-caught
            err = ex
            if not isinstance(ex, SizeResolutionFailed):
                err = SizeResolutionFailed(item_id, str(ex))
            logger.warning("{}; staging with 0 bytes", err)
            return 0
        return max(size, 0)

    def _load(self) -> None:
        for raw in self._store.load() or []:
            try:
                entry = TrashEntry.from_dict(raw)
            except (KeyError, TypeError, ValueError) as ex:
                logger.warning("Skipping malformed trash entry {}: {}", raw, ex)
                continue
            self._entries[entry.id] = entry
        logger.info("Trash ledger loaded: {} entries", len(self._entries))

    def _save(self) -> None:
        self._store.schedule_write([e.to_dict() for e in self.entries()])
