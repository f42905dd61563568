from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from app.viewmodels.stats_vm import StatsVM
from app.viewmodels.triage_vm import TriageSession
from core.models import MediaScope
from core.services.reconciliation import ReconciliationController
from core.services.review_ledger import ReviewLedger
from core.services.stats_service import StatsAggregator
from core.services.trash_ledger import TrashLedger
from infrastructure.folder_source import FolderAssetSource
from infrastructure.json_store import JsonLedgerStore
from infrastructure.logging import init_logging
from infrastructure.settings import JsonSettings, TriageConfig

BASE_DIR = Path(__file__).parent


@dataclass
class Services:
    """Process-wide services, built once and handed to sessions."""

    config: TriageConfig
    source: FolderAssetSource
    reviews: ReviewLedger
    trash: TrashLedger
    reconciler: ReconciliationController
    stats: StatsAggregator

    def new_session(self, scope: MediaScope = MediaScope.IMAGES, **kwargs) -> TriageSession:
        """Create a triage session using the configured category and batch size."""
        batch_size = (
            self.config.video_batch_size if scope is MediaScope.VIDEOS else self.config.batch_size
        )
        kwargs.setdefault("category", self.config.category)
        kwargs.setdefault("batch_size", batch_size)
        kwargs.setdefault("review_delay", self.config.review_delay_seconds)
        return TriageSession(self.source, self.reviews, self.trash, scope=scope, **kwargs)

    def stats_vm(self) -> StatsVM:
        return StatsVM(aggregator=self.stats)


def build_services(config: TriageConfig) -> Services:
    """Wire the ledgers, source and controllers for `config`."""
    source = FolderAssetSource(
        config.library_root, favorites=config.favorites, delete_log_dir=config.delete_log_dir
    )
    reviews = ReviewLedger(JsonLedgerStore(config.reviewed_path, "reviewed_ids"))
    trash = TrashLedger(JsonLedgerStore(config.trash_path, "trash_entries"), source)
    return Services(
        config=config,
        source=source,
        reviews=reviews,
        trash=trash,
        reconciler=ReconciliationController(trash, source),
        stats=StatsAggregator(reviews, trash, source),
    )


async def _summarize(services: Services) -> None:
    session = services.new_session()
    await session.load_next_batch()
    vm = services.stats_vm()
    await vm.load()
    logger.info(
        "Library {}: {} items in deck | reviewed={} deleted={} saved={}",
        services.config.library_root,
        len(session.deck),
        vm.total_reviewed_count,
        vm.total_deleted_count,
        vm.total_saved_space,
    )


def main() -> int:
    init_logging()
    try:
        settings = JsonSettings(BASE_DIR / "settings.json")
        config = TriageConfig.from_settings(settings)
    except (OSError, ValueError) as ex:
        logger.exception("Invalid settings: {}", ex)
        return 1

    services = build_services(config)
    asyncio.run(_summarize(services))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
