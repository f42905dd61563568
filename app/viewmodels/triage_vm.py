"""ViewModel for a swipe-triage session over one deck of media items."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable

from loguru import logger

from core.models import ItemRef, MediaScope, PhotoCategory, StagedBatch, SwipeOutcome
from core.services.interfaces import AssetSourceProvider, ReconcileResult
from core.services.reconciliation import ReconciliationController
from core.services.review_ledger import ReviewLedger
from core.services.trash_ledger import TrashLedger

# Effective deck size when the batch size is 0 ("unlimited").
LARGE_DEFAULT = 1000
# Raw items fetched per deck slot. Absorbs already-decided items but is not a
# guarantee: when most of the window is decided the deck comes out short even
# if older undecided items exist.
OVERFETCH_FACTOR = 5
DEFAULT_REVIEW_DELAY = 0.5


class TriageSession:
    """Deck loading, swipe decisions and the session's staged batch.

    Mediates between the media source and the two ledgers. Decisions take
    effect on the deck immediately; trash staging completes in the background.
    """

    def __init__(
        self,
        source: AssetSourceProvider,
        reviews: ReviewLedger,
        trash: TrashLedger,
        *,
        category: PhotoCategory = PhotoCategory.ALL,
        batch_size: int = 50,
        scope: MediaScope = MediaScope.IMAGES,
        on_ready_for_review: Callable[[], None] | None = None,
        on_deck_loaded: Callable[[list[ItemRef]], None] | None = None,
        review_delay: float = DEFAULT_REVIEW_DELAY,
    ) -> None:
        """Create a session.

        Args:
            source: Media library provider.
            reviews: Kept-item ledger.
            trash: Trash ledger.
            category: Library filter for image decks.
            batch_size: Deck size; 0 means unlimited.
            scope: Images or videos.
            on_ready_for_review: Called (after `review_delay` seconds) when the
                deck runs out while items are staged.
            on_deck_loaded: Called with every published deck.
            review_delay: Debounce before `on_ready_for_review` fires.
        """
        if batch_size < 0:
            raise ValueError(f"batch_size must be >= 0, got {batch_size}")
        self._source = source
        self._reviews = reviews
        self._trash = trash
        self.category = category
        self.batch_size = batch_size
        self.scope = scope
        self.staged_batch = StagedBatch()
        self.is_loading = False
        self._deck: list[ItemRef] = []
        self._on_ready = on_ready_for_review
        self._on_deck_loaded = on_deck_loaded
        self._review_delay = review_delay
        self._ready_armed = False
        self._ready_handle: asyncio.TimerHandle | None = None

    @property
    def deck(self) -> list[ItemRef]:
        """Undecided items in presentation order."""
        return list(self._deck)

    @property
    def ready_for_reconciliation(self) -> bool:
        """True while the deck is exhausted and staged items await review."""
        return not self._deck and bool(self.staged_batch) and not self.is_loading

    async def load_next_batch(self) -> bool:
        """Fetch, filter and publish a new deck.

        Returns False without doing anything when a load is already running.
        """
        if self.is_loading:
            logger.debug("Load already in flight for {}/{}", self.scope.value, self.category.value)
            return False
        self.is_loading = True
        try:
            target = LARGE_DEFAULT if self.batch_size == 0 else self.batch_size
            fetched = await self._source.fetch(
                self.category,
                newest_first=True,
                limit=target * OVERFETCH_FACTOR,
                scope=self.scope,
            )
            pending = self.staged_batch.ids() | self._trash.pending_ids()
            filtered = [
                item
                for item in fetched
                if item.id not in pending and not self._reviews.is_reviewed(item.id)
            ]
            deck = filtered if self.batch_size == 0 else filtered[:target]
            self._deck = deck
            self._ready_armed = True
            logger.info(
                "Deck loaded: scope={} category={} fetched={} shown={}",
                self.scope.value,
                self.category.value,
                len(fetched),
                len(deck),
            )
        except Exception as ex:
            logger.error("Deck load failed for {}: {}", self.category.value, ex)
            raise
        finally:
            self.is_loading = False
        if self._on_deck_loaded is not None:
            self._on_deck_loaded(list(deck))
        return True

    async def select_category(self, category: PhotoCategory) -> bool:
        """Switch to `category` and load a fresh deck."""
        self.category = category
        return await self.load_next_batch()

    def decide(self, item: ItemRef, outcome: SwipeOutcome) -> None:
        """Apply a swipe to `item`.

        The item leaves the deck before anything else happens. A delete swipe
        must be made from inside the running event loop, since the ledger write
        is scheduled on it; outside a loop it raises RuntimeError and changes
        nothing.
        """
        if outcome is SwipeOutcome.DELETE:
            asyncio.get_running_loop()
        self._deck = [it for it in self._deck if it.id != item.id]

        if outcome is SwipeOutcome.KEEP:
            if self._trash.contains(item.id) or item.id in self._trash.pending_ids():
                # Staged in an earlier run and never reconciled
                logger.info("Keeping {} drops its stale trash entry", item.id)
                self._trash.restore(item.id)
                self.staged_batch.remove(item.id)
            self._reviews.mark_reviewed(item.id)
        else:
            if self._reviews.is_reviewed(item.id):
                logger.warning("Ignoring delete of already kept item {}", item.id)
                return
            if self.staged_batch.add(item):
                self._trash.schedule_stage(item)

        self._maybe_signal_ready()

    def restore_item(self, item_id: str) -> None:
        """Take one item back out of the staged batch and the trash ledger."""
        self.staged_batch.remove(item_id)
        self._trash.restore(item_id)

    async def restore_all(self) -> None:
        """Restore every staged item and load the next deck."""
        for item in self.staged_batch:
            self._trash.restore(item.id)
        self.staged_batch.clear()
        await self.load_next_batch()

    async def finish_review(
        self,
        controller: ReconciliationController,
        keep_selected: Iterable[str] | None = None,
    ) -> ReconcileResult:
        """Reconcile the staged batch and, on success, load the next deck."""
        await self.wait_for_staging()
        result = await controller.reconcile(self.staged_batch, keep_selected)
        if result.success:
            await self.load_next_batch()
        return result

    async def wait_for_staging(self) -> None:
        """Wait until background trash writes for staged items have landed."""
        await self._trash.wait_idle()

    def close(self) -> None:
        """Cancel a pending ready-for-review callback."""
        if self._ready_handle is not None:
            self._ready_handle.cancel()
            self._ready_handle = None

    def _maybe_signal_ready(self) -> None:
        if self._deck or not self.staged_batch or not self._ready_armed:
            return
        self._ready_armed = False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._fire_ready()
            return
        self._ready_handle = loop.call_later(self._review_delay, self._fire_ready)

    def _fire_ready(self) -> None:
        self._ready_handle = None
        if self.ready_for_reconciliation and self._on_ready is not None:
            logger.info("Deck exhausted with {} staged items", len(self.staged_batch))
            self._on_ready()
