"""Shared pytest fixtures for triage tests."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from core.errors import PhysicalDeleteFailed
from core.models import ItemRef, MediaKind, MediaScope, PhotoCategory
from core.services.reconciliation import ReconciliationController
from core.services.review_ledger import ReviewLedger
from core.services.stats_service import StatsAggregator
from core.services.trash_ledger import TrashLedger
from infrastructure.json_store import JsonLedgerStore

MB = 1_000_000


class FakeSource:
    """In-memory media library with controllable latency and failures."""

    def __init__(self) -> None:
        self.items: dict[str, ItemRef] = {}
        self.sizes: dict[str, int] = {}
        self.deleted: list[str] = []
        self.fetch_calls = 0
        self.delete_calls = 0
        self.fail_sizes: set[str] = set()
        self.fail_delete = False
        # When set, fetch waits on this event before returning
        self.fetch_gate: asyncio.Event | None = None
        # Per-id events gating resolve_size
        self.size_gates: dict[str, asyncio.Event] = {}

    def add(
        self,
        item_id: str,
        kind: MediaKind = MediaKind.PHOTO,
        size: int = 1000,
        age_minutes: int = 0,
        favorite: bool = False,
    ) -> ItemRef:
        item = ItemRef(
            id=item_id,
            kind=kind,
            created_at=datetime(2024, 1, 1) - timedelta(minutes=age_minutes),
            is_favorite=favorite,
        )
        self.items[item_id] = item
        self.sizes[item_id] = size
        return item

    def add_many(self, count: int, prefix: str = "p") -> list[ItemRef]:
        return [self.add(f"{prefix}{i:03d}", age_minutes=i) for i in range(count)]

    async def fetch(
        self,
        category: PhotoCategory,
        *,
        newest_first: bool = True,
        limit: int = 0,
        scope: MediaScope = MediaScope.IMAGES,
    ) -> list[ItemRef]:
        self.fetch_calls += 1
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        items = [it for it in self.items.values() if it.id not in self.deleted]
        if scope is MediaScope.VIDEOS:
            items = [it for it in items if it.kind is MediaKind.VIDEO]
        else:
            items = [it for it in items if it.kind is not MediaKind.VIDEO]
            if category is PhotoCategory.SCREENSHOTS:
                items = [it for it in items if it.kind is MediaKind.SCREENSHOT]
            elif category is PhotoCategory.FAVORITES:
                items = [it for it in items if it.is_favorite]
            elif category is PhotoCategory.LIVE:
                items = [it for it in items if it.kind is MediaKind.LIVE]
        items.sort(key=lambda it: it.created_at, reverse=newest_first)
        return items[:limit] if limit > 0 else items

    async def resolve_size(self, item_id: str) -> int:
        gate = self.size_gates.get(item_id)
        if gate is not None:
            await gate.wait()
        if item_id in self.fail_sizes:
            raise OSError(f"no size for {item_id}")
        return self.sizes[item_id]

    async def resolve_kinds(self, item_ids: Iterable[str]) -> dict[str, MediaKind]:
        return {
            i: self.items[i].kind for i in item_ids if i in self.items and i not in self.deleted
        }

    async def physically_delete(self, item_ids: list[str]) -> None:
        self.delete_calls += 1
        if self.fail_delete:
            raise PhysicalDeleteFailed("user declined", [(i, "declined") for i in item_ids])
        self.deleted.extend(item_ids)


@pytest.fixture()
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture()
def reviews(data_dir: Path) -> ReviewLedger:
    return ReviewLedger(JsonLedgerStore(data_dir / "reviewed.json", "reviewed_ids"))


@pytest.fixture()
def trash(data_dir: Path, source: FakeSource) -> TrashLedger:
    return TrashLedger(JsonLedgerStore(data_dir / "trash.json", "trash_entries"), source)


@pytest.fixture()
def reconciler(trash: TrashLedger, source: FakeSource) -> ReconciliationController:
    return ReconciliationController(trash, source)


@pytest.fixture()
def aggregator(reviews: ReviewLedger, trash: TrashLedger, source: FakeSource) -> StatsAggregator:
    return StatsAggregator(reviews, trash, source)
