"""Tests for the kept-item ledger and its JSON persistence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from core.errors import PersistenceWriteFailed
from core.services.review_ledger import ReviewLedger
from infrastructure.json_store import JsonLedgerStore


def _ledger(path: Path) -> ReviewLedger:
    return ReviewLedger(JsonLedgerStore(path, "reviewed_ids"))


class TestReviewLedger:
    def test_mark_reviewed_is_idempotent(self, reviews: ReviewLedger) -> None:
        reviews.mark_reviewed("a")
        reviews.mark_reviewed("a")
        assert reviews.is_reviewed("a")
        assert len(reviews) == 1
        assert reviews.all_reviewed_ids() == frozenset({"a"})

    def test_unknown_id_is_not_reviewed(self, reviews: ReviewLedger) -> None:
        assert not reviews.is_reviewed("missing")
        assert "missing" not in reviews

    def test_clear_empties_set(self, reviews: ReviewLedger) -> None:
        reviews.mark_reviewed("a")
        reviews.mark_reviewed("b")
        reviews.clear()
        assert reviews.all_reviewed_ids() == frozenset()

    def test_sync_writes_survive_reload(self, data_dir: Path) -> None:
        """Outside an event loop every mutation is written immediately."""
        path = data_dir / "reviewed.json"
        ledger = _ledger(path)
        ledger.mark_reviewed("x")
        ledger.mark_reviewed("y")

        assert json.loads(path.read_text(encoding="utf-8")) == {"reviewed_ids": ["x", "y"]}
        assert _ledger(path).all_reviewed_ids() == frozenset({"x", "y"})

    async def test_async_writes_land_after_flush(self, data_dir: Path) -> None:
        path = data_dir / "reviewed.json"
        ledger = _ledger(path)
        for i in range(20):
            ledger.mark_reviewed(f"id{i}")
        await ledger.flush()

        reloaded = _ledger(path)
        assert len(reloaded) == 20

    async def test_clear_persists(self, data_dir: Path) -> None:
        path = data_dir / "reviewed.json"
        ledger = _ledger(path)
        ledger.mark_reviewed("a")
        ledger.clear()
        await ledger.flush()
        assert _ledger(path).all_reviewed_ids() == frozenset()


class TestJsonLedgerStore:
    def test_missing_file_loads_as_none(self, tmp_path: Path) -> None:
        assert JsonLedgerStore(tmp_path / "nope.json", "k").load() is None

    def test_corrupt_file_is_moved_aside(self, tmp_path: Path) -> None:
        path = tmp_path / "reviewed.json"
        path.write_text("{not json", encoding="utf-8")

        ledger = _ledger(path)

        assert len(ledger) == 0
        assert not path.exists()
        assert (tmp_path / "reviewed.json.corrupt").exists()

    def test_wrong_shape_is_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "reviewed.json"
        path.write_text(json.dumps({"other": []}), encoding="utf-8")
        assert JsonLedgerStore(path, "reviewed_ids").load() is None

    def test_sync_write_failure_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        ledger = _ledger(blocker / "reviewed.json")

        with pytest.raises(PersistenceWriteFailed):
            ledger.mark_reviewed("a")
        # In-memory state stays authoritative
        assert ledger.is_reviewed("a")

    async def test_async_write_failure_surfaces_on_flush(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        store = JsonLedgerStore(blocker / "reviewed.json", "reviewed_ids")
        ledger = ReviewLedger(store)

        ledger.mark_reviewed("a")
        with pytest.raises(PersistenceWriteFailed):
            await ledger.flush()
        assert store.last_error is not None
        assert ledger.is_reviewed("a")

    async def test_flush_retry_recovers(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        store = JsonLedgerStore(blocker / "reviewed.json", "reviewed_ids")
        ledger = ReviewLedger(store)
        ledger.mark_reviewed("a")
        with pytest.raises(PersistenceWriteFailed):
            await ledger.flush()

        blocker.unlink()
        await ledger.flush()

        assert store.last_error is None
        assert _ledger(blocker / "reviewed.json").all_reviewed_ids() == frozenset({"a"})
