"""Statistics over the review and trash ledgers."""

from __future__ import annotations

from collections import Counter

from loguru import logger

from core.models import STATS_BUCKETS, KindStats, StatsSnapshot, stats_bucket
from core.services.interfaces import AssetSourceProvider
from core.services.review_ledger import ReviewLedger
from core.services.trash_ledger import TrashLedger


class StatsAggregator:
    """Computes per-kind review/delete statistics and performs full resets."""

    def __init__(
        self, reviews: ReviewLedger, trash: TrashLedger, source: AssetSourceProvider
    ) -> None:
        self._reviews = reviews
        self._trash = trash
        self._source = source

    async def compute_snapshot(self) -> StatsSnapshot:
        """Build a snapshot of counts, sizes and deleted-share per bucket.

        Reviewed ids are classified through the source. Ids the source no
        longer knows are left out of the per-kind rows but still count toward
        `total_reviewed_count`. With nothing deleted yet, every bucket gets an
        equal share so charts have something to draw.
        """
        rows = {kind: KindStats(kind=kind) for kind in STATS_BUCKETS}

        for entry in self._trash.entries():
            row = rows[stats_bucket(entry.kind)]
            row.deleted_count += 1
            row.saved_bytes += entry.size_bytes

        reviewed_ids = self._reviews.all_reviewed_ids()
        if reviewed_ids:
            resolved = await self._source.resolve_kinds(sorted(reviewed_ids))
            kinds = {i: kind for i, kind in resolved.items() if i in reviewed_ids}
            per_bucket = Counter(stats_bucket(kind) for kind in kinds.values())
            for kind, count in per_bucket.items():
                rows[kind].reviewed_count = count
            missing = len(reviewed_ids) - len(kinds)
            if missing:
                logger.debug("{} reviewed ids no longer resolve in the source", missing)

        total_deleted = sum(row.deleted_count for row in rows.values())
        for row in rows.values():
            if total_deleted:
                row.percent = row.deleted_count / total_deleted
            else:
                row.percent = 1 / len(rows)

        return StatsSnapshot(
            by_kind=rows,
            total_reviewed_count=len(reviewed_ids),
            total_deleted_count=total_deleted,
            total_saved_bytes=self._trash.total_size(),
        )

    def reset_review_history(self) -> None:
        """Forget kept ids only; deleted statistics are preserved."""
        self._reviews.clear()

    def reset_all(self) -> None:
        """Erase review history and all cumulative trash statistics."""
        self._reviews.clear()
        self._trash.reset_all()
        logger.info("All statistics reset")
