"""Core domain models for media items, ledger entries and statistics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class MediaKind(str, Enum):
    """Kind of a media item as reported by the source."""

    PHOTO = "photo"
    SCREENSHOT = "screenshot"
    VIDEO = "video"
    LIVE = "live"


class PhotoCategory(str, Enum):
    """Library filter applied when building a deck of still images."""

    ALL = "all"
    FAVORITES = "favorites"
    SCREENSHOTS = "screenshots"
    LIVE = "live"
    # Providers cannot isolate selfies; treated as no filter.
    SELFIES = "selfies"


class MediaScope(str, Enum):
    """Which half of the library a deck is drawn from."""

    IMAGES = "images"
    VIDEOS = "videos"


class SwipeOutcome(str, Enum):
    """User decision for a single deck item."""

    KEEP = "keep"
    DELETE = "delete"


def format_bytes(size: int, zero: str = "0 KB") -> str:
    """Format a byte count in decimal file-size units (KB, MB, GB).

    Returns `zero` for a size of 0 so empty totals stay short.
    """
    if size <= 0:
        return zero
    value = size / 1000
    unit = "KB"
    for next_unit in ("MB", "GB"):
        # Compare the displayed value so 999.99 KB shows as 1 MB
        if round(value, 1) < 1000:
            break
        value /= 1000
        unit = next_unit
    text = f"{value:.1f}".rstrip("0").rstrip(".")
    return f"{text} {unit}"


@dataclass(frozen=True, eq=False)
class ItemRef:
    """A media item supplied by the source on each fetch.

    Identity is the `id` alone; two refs with the same id are the same item
    even if the source reports different metadata between fetches.
    """

    id: str
    kind: MediaKind
    created_at: datetime
    is_favorite: bool = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ItemRef):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(frozen=True)
class TrashEntry:
    """A staged (and possibly already deleted) item in the trash ledger."""

    id: str
    kind: MediaKind
    size_bytes: int
    staged_at: datetime

    @property
    def formatted_size(self) -> str:
        """Human readable size; "0 KB" when the size never resolved."""
        return format_bytes(self.size_bytes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "size_bytes": self.size_bytes,
            "staged_at": self.staged_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> TrashEntry:
        return cls(
            id=str(data["id"]),
            kind=MediaKind(data["kind"]),
            size_bytes=int(data.get("size_bytes") or 0),
            staged_at=datetime.fromisoformat(data["staged_at"]),
        )


# Kinds shown as separate rows on the statistics page. Live photos are
# counted with photos.
STATS_BUCKETS: tuple[MediaKind, ...] = (MediaKind.PHOTO, MediaKind.SCREENSHOT, MediaKind.VIDEO)


def stats_bucket(kind: MediaKind) -> MediaKind:
    """Map a media kind onto its statistics bucket."""
    return MediaKind.PHOTO if kind is MediaKind.LIVE else kind


@dataclass
class KindStats:
    """Per-bucket statistics row.

    Attributes:
        kind: Statistics bucket.
        reviewed_count: Kept items of this kind still resolvable in the source.
        deleted_count: Trash ledger entries of this kind.
        saved_bytes: Sum of trash ledger sizes of this kind.
        percent: Share of all deleted items, in the range 0..1.
    """

    kind: MediaKind
    reviewed_count: int = 0
    deleted_count: int = 0
    saved_bytes: int = 0
    percent: float = 0.0


@dataclass
class StatsSnapshot:
    """Point-in-time statistics over both ledgers."""

    by_kind: dict[MediaKind, KindStats] = field(default_factory=dict)
    total_reviewed_count: int = 0
    total_deleted_count: int = 0
    total_saved_bytes: int = 0

    def percentages(self) -> dict[MediaKind, float]:
        return {kind: row.percent for kind, row in self.by_kind.items()}


class StagedBatch:
    """Ordered, de-duplicated list of items staged in the current session."""

    def __init__(self, items: list[ItemRef] | None = None) -> None:
        self._items: list[ItemRef] = []
        for item in items or []:
            self.add(item)

    def add(self, item: ItemRef) -> bool:
        """Append `item` unless already present; return True when appended."""
        if item in self._items:
            return False
        self._items.append(item)
        return True

    def remove(self, item_id: str) -> ItemRef | None:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return self._items.pop(index)
        return None

    def clear(self) -> None:
        self._items.clear()

    def ids(self) -> set[str]:
        return {item.id for item in self._items}

    @property
    def items(self) -> list[ItemRef]:
        return list(self._items)

    def __contains__(self, item_id: object) -> bool:
        return any(item.id == item_id for item in self._items)

    def __iter__(self):
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)
