"""Batch reconciliation of staged deletions.

The user reviews the staged batch with every item pre-selected for deletion
and deselects the ones to rescue. Reconciling restores the deselected items
and sends the selected ones to the source for physical deletion.
"""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from core.errors import PhysicalDeleteFailed
from core.models import StagedBatch
from core.services.interfaces import AssetSourceProvider, ReconcileResult
from core.services.trash_ledger import TrashLedger


class ReconciliationController:
    """Splits a staged batch into restored and confirmed-deleted items."""

    def __init__(self, trash: TrashLedger, source: AssetSourceProvider) -> None:
        self._trash = trash
        self._source = source

    async def reconcile(
        self, batch: StagedBatch, keep_selected: Iterable[str] | None = None
    ) -> ReconcileResult:
        """Restore unselected items and delete the selected ones.

        Args:
            batch: The session's staged batch. Emptied on success.
            keep_selected: Ids confirmed for deletion. None selects the whole
                batch; an empty selection restores everything.

        Restores are applied before the delete and are not rolled back if the
        delete fails. On failure the remaining batch and the ledger are left
        untouched so the call can be retried. Batch items with no trash entry
        (after a reset) are never deleted; they are reported as restored.
        """
        batch_ids = batch.ids()
        selected = set(batch_ids) if keep_selected is None else set(keep_selected)
        unknown = selected - batch_ids
        if unknown:
            raise ValueError(f"Selected ids are not in the staged batch: {sorted(unknown)}")

        # A statistics reset can drop entries behind a live batch; such ids
        # have no ledger record and must not be deleted untracked
        pending = self._trash.pending_ids()
        stale = [
            item.id for item in batch if item.id not in self._trash and item.id not in pending
        ]
        if stale:
            logger.warning("Dropping {} staged items the trash ledger no longer holds", len(stale))
            for item_id in stale:
                batch.remove(item_id)

        # Keep batch order so the source sees items the way the user did
        to_restore = [item.id for item in batch if item.id not in selected]
        to_delete = [item.id for item in batch if item.id in selected]

        for item_id in to_restore:
            self._trash.restore(item_id)
            batch.remove(item_id)
        to_restore = stale + to_restore
        if to_restore:
            logger.info("Reconcile restored {} items", len(to_restore))

        if not to_delete:
            return ReconcileResult(success=True, restored_ids=to_restore)

        try:
            await self._source.physically_delete(to_delete)
        except PhysicalDeleteFailed as ex:
            logger.error("Physical delete failed for {} items: {}", len(to_delete), ex)
            return ReconcileResult(success=False, restored_ids=to_restore, error=ex)
        except OSError as ex:
            logger.error("Physical delete failed for {} items: {}", len(to_delete), ex)
            err = PhysicalDeleteFailed(str(ex), [(i, str(ex)) for i in to_delete])
            return ReconcileResult(success=False, restored_ids=to_restore, error=err)

        # Ledger entries stay: they are the cumulative deleted log
        batch.clear()
        logger.info(
            "Reconcile deleted {} items (ledger total {} entries)",
            len(to_delete),
            self._trash.total_count(),
        )
        return ReconcileResult(success=True, deleted_ids=to_delete, restored_ids=to_restore)
