"""ViewModel exposing statistics in display form."""

from __future__ import annotations

from dataclasses import dataclass, field

from core.models import STATS_BUCKETS, MediaKind, StatsSnapshot, format_bytes
from core.services.stats_service import StatsAggregator

_TITLES = {
    MediaKind.PHOTO: "Photos",
    MediaKind.SCREENSHOT: "Screenshots",
    MediaKind.VIDEO: "Videos",
}


@dataclass
class CategoryStatRow:
    """One row of the statistics page."""

    title: str
    viewed_count: int
    deleted_count: int
    saved_space: str
    percent: float


@dataclass
class StatsVM:
    """Formats `StatsSnapshot` values for binding."""

    aggregator: StatsAggregator
    rows: list[CategoryStatRow] = field(default_factory=list)
    total_saved_space: str = "0"
    total_reviewed_count: int = 0
    total_deleted_count: int = 0

    async def load(self) -> StatsSnapshot:
        snapshot = await self.aggregator.compute_snapshot()
        self.apply(snapshot)
        return snapshot

    def apply(self, snapshot: StatsSnapshot) -> None:
        """Replace the displayed values with `snapshot`."""
        self.rows = [
            CategoryStatRow(
                title=_TITLES[kind],
                viewed_count=snapshot.by_kind[kind].reviewed_count,
                deleted_count=snapshot.by_kind[kind].deleted_count,
                saved_space=format_bytes(snapshot.by_kind[kind].saved_bytes, zero="0"),
                percent=snapshot.by_kind[kind].percent,
            )
            for kind in STATS_BUCKETS
        ]
        self.total_saved_space = format_bytes(snapshot.total_saved_bytes, zero="0")
        self.total_reviewed_count = snapshot.total_reviewed_count
        self.total_deleted_count = snapshot.total_deleted_count

    async def reset_history(self) -> None:
        """Clear review history and refresh."""
        self.aggregator.reset_review_history()
        await self.load()

    async def reset_all(self) -> None:
        """Clear every statistic and refresh."""
        self.aggregator.reset_all()
        await self.load()
