"""Core service interfaces and shared data structures.

This module defines the media source protocol consumed by the triage core and
the result object returned by batch reconciliation.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from core.errors import PhysicalDeleteFailed
from core.models import ItemRef, MediaKind, MediaScope, PhotoCategory


class AssetSourceProvider(Protocol):
    """Media library the triage core reads from and deletes through."""

    async def fetch(
        self,
        category: PhotoCategory,
        *,
        newest_first: bool = True,
        limit: int = 0,
        scope: MediaScope = MediaScope.IMAGES,
    ) -> list[ItemRef]:
        """Return up to `limit` items (0 = all) matching `category` within `scope`."""
        ...

    async def resolve_size(self, item_id: str) -> int:
        """Return the byte size of `item_id`; raise on failure."""
        ...

    async def resolve_kinds(self, item_ids: Iterable[str]) -> dict[str, MediaKind]:
        """Return kinds for the ids that still exist; missing ids are omitted."""
        ...

    async def physically_delete(self, item_ids: list[str]) -> None:
        """Delete items from the library; raise `PhysicalDeleteFailed` on failure."""
        ...


class LedgerStore(Protocol):
    """Durable record backing a single ledger."""

    def load(self) -> list | None:
        """Return the last persisted payload, or None when nothing was saved."""
        ...

    def schedule_write(self, payload: list) -> None:
        """Persist `payload` in the background (or immediately outside a loop)."""
        ...

    async def flush(self) -> None:
        """Wait for pending writes; raise `PersistenceWriteFailed` if the last one failed."""
        ...


@dataclass
class ReconcileResult:
    """Outcome of reconciling a staged batch.

    Attributes:
        success: True when the delete side completed (or was empty).
        deleted_ids: Ids physically deleted by this call.
        restored_ids: Ids restored to the undecided pool.
        error: The delete failure, when `success` is False.
    """

    success: bool
    deleted_ids: list[str] = field(default_factory=list)
    restored_ids: list[str] = field(default_factory=list)
    error: PhysicalDeleteFailed | None = None

    @staticmethod
    def action_label(selected_count: int) -> str:
        """Label for the confirm button given the number of selected items."""
        if selected_count == 0:
            return "Restore All"
        noun = "Item" if selected_count == 1 else "Items"
        return f"Delete {selected_count} {noun}"
