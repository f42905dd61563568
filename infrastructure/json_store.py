"""JSON persistence for ledger records.

Each store owns one file holding `{key: [...]}`. Writes are serialized through
a single writer task per store which always writes the newest snapshot, so a
burst of mutations costs at most one extra write. Files are replaced
atomically; a crash mid-write leaves the previous version intact.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
import tempfile

from loguru import logger

from core.errors import PersistenceWriteFailed

_NOTHING = object()


class JsonLedgerStore:
    """Durable `{key: list}` record stored as a JSON file."""

    def __init__(self, path: str | Path, key: str) -> None:
        self._path = Path(path)
        self._key = key
        self._latest: object = _NOTHING
        self._pending: object = _NOTHING
        self._writer: asyncio.Task | None = None
        self._last_error: PersistenceWriteFailed | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def last_error(self) -> PersistenceWriteFailed | None:
        """Failure of the most recent write attempt, if it failed."""
        return self._last_error

    def load(self) -> list | None:
        """Return the persisted list, or None when missing or unreadable.

        An unreadable file is moved aside to `<name>.corrupt` so the next
        write does not destroy it.
        """
        if not self._path.exists():
            return None
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as ex:
            logger.error("Ledger file unreadable {}: {}", self._path, ex)
            self._quarantine()
            return None
        value = data.get(self._key) if isinstance(data, dict) else None
        if not isinstance(value, list):
            logger.error("Ledger file {} has no '{}' list", self._path, self._key)
            self._quarantine()
            return None
        return value

    def schedule_write(self, payload: list) -> None:
        """Persist `payload`.

        Inside a running event loop the write is queued on the store's writer
        task. Outside a loop it happens immediately and raises
        `PersistenceWriteFailed` on error.
        """
        snapshot = list(payload)
        self._latest = snapshot
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            try:
                self._write_file(snapshot)
            except PersistenceWriteFailed as ex:
                self._last_error = ex
                raise
            self._last_error = None
            return
        self._pending = snapshot
        if self._writer is None or self._writer.done():
            self._writer = loop.create_task(self._drain())

    async def flush(self) -> None:
        """Wait for queued writes.

        If the last write failed, the newest in-memory snapshot is written
        once more before giving up with `PersistenceWriteFailed`.
        """
        if self._writer is not None:
            await self._writer
        if self._last_error is None or self._latest is _NOTHING:
            return
        logger.info("Retrying ledger write {}", self._path)
        self._pending = self._latest
        self._writer = asyncio.get_running_loop().create_task(self._drain())
        await self._writer
        if self._last_error is not None:
            raise self._last_error

    async def _drain(self) -> None:
        while self._pending is not _NOTHING:
            snapshot, self._pending = self._pending, _NOTHING
            try:
                await asyncio.to_thread(self._write_file, snapshot)
                self._last_error = None
            except PersistenceWriteFailed as ex:
                self._last_error = ex
                logger.error("Ledger write failed: {}", ex)

    def _write_file(self, snapshot: object) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump({self._key: snapshot}, f, ensure_ascii=False, indent=1)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as ex:
            raise PersistenceWriteFailed(str(self._path), str(ex)) from ex

    def _quarantine(self) -> None:
        target = self._path.with_name(self._path.name + ".corrupt")
        try:
            os.replace(self._path, target)
            logger.warning("Moved unreadable ledger to {}", target)
        except OSError as ex:
            logger.error("Could not move unreadable ledger {}: {}", self._path, ex)
