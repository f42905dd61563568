"""Media source backed by a folder of image and video files.

Implements the `AssetSourceProvider` protocol. Item ids are POSIX paths
relative to the library root. Physical deletion moves files to the OS
recycle bin and writes an audit CSV log.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
import csv
from datetime import datetime
import os
from pathlib import Path
from typing import Any

from loguru import logger
from PIL import Image
from send2trash import send2trash

from core.errors import PhysicalDeleteFailed, SizeResolutionFailed
from core.models import ItemRef, MediaKind, MediaScope, PhotoCategory

IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".heic", ".heif", ".gif", ".webp", ".tif", ".tiff", ".dng"}
VIDEO_EXTS = {".mov", ".mp4", ".m4v", ".avi", ".mkv"}
SCREENSHOT_MARKERS = ("screenshot", "screen shot", "screen_shot")


def get_exif_datetime_original(path: Path) -> datetime | None:
    """Extract EXIF DateTimeOriginal (or DateTime) via Pillow.

    Returns None when the file has no readable EXIF date.
    """
    try:
        with Image.open(path) as im:
            data: Any = im.getexif()
            if not data:
                return None
            # EXIF tag 36867 is DateTimeOriginal (in the Exif IFD), 306 is DateTime
            val = data.get_ifd(0x8769).get(36867) or data.get(306)
            if not val:
                return None
            val_str = str(val).strip()
            if len(val_str) >= 19 and val_str[4] == ":" and val_str[7] == ":":
                return datetime.strptime(val_str[:19], "%Y:%m:%d %H:%M:%S")
            return datetime.fromisoformat(val_str.replace("/", "-"))
    except (OSError, ValueError, TypeError, AttributeError) as ex:
        logger.debug("EXIF read failed for {}: {}", path, ex)
        return None


def _pair_key(path: Path) -> tuple[Path, str]:
    return path.parent, path.stem.lower()


class FolderAssetSource:
    """Treats every media file below `root` as a library item.

    Each scan walks the tree once. Capture dates are cached per path and only
    re-read when a file's size or mtime changes, so repeated deck loads do not
    reopen every image.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        favorites: Iterable[str] = (),
        delete_log_dir: str | Path | None = None,
    ) -> None:
        self._root = Path(root).resolve()
        self._favorites = set(favorites)
        self._delete_log_dir = Path(delete_log_dir) if delete_log_dir else None
        # (parent, lowercase stem) -> motion clip, from the latest scan
        self._live_clips: dict[tuple[Path, str], Path] = {}
        self._dates: dict[Path, tuple[tuple[int, int], datetime]] = {}

    @property
    def root(self) -> Path:
        return self._root

    async def fetch(
        self,
        category: PhotoCategory,
        *,
        newest_first: bool = True,
        limit: int = 0,
        scope: MediaScope = MediaScope.IMAGES,
    ) -> list[ItemRef]:
        items = await asyncio.to_thread(self._scan)
        items = [it for it in items if self._matches(it, category, scope)]
        items.sort(key=lambda it: (it.created_at, it.id), reverse=newest_first)
        return items[:limit] if limit > 0 else items

    async def resolve_size(self, item_id: str) -> int:
        path = self._path_for(item_id)
        if path is None:
            raise SizeResolutionFailed(item_id, "outside library root")
        try:
            size = await asyncio.to_thread(os.path.getsize, path)
        except OSError as ex:
            raise SizeResolutionFailed(item_id, str(ex)) from ex
        pair = await asyncio.to_thread(self._live_pair, path)
        if pair is not None:
            try:
                size += await asyncio.to_thread(os.path.getsize, pair)
            except OSError as ex:
                logger.debug("Live clip size unavailable for {}: {}", item_id, ex)
        return size

    async def resolve_kinds(self, item_ids: Iterable[str]) -> dict[str, MediaKind]:
        return await asyncio.to_thread(self._resolve_kinds, list(item_ids))

    async def physically_delete(self, item_ids: list[str]) -> None:
        success, failed = await asyncio.to_thread(self._delete_to_recycle, list(item_ids))
        self._write_delete_log(success, failed)
        if failed:
            raise PhysicalDeleteFailed(
                f"{len(failed)} of {len(item_ids)} items could not be deleted", failed
            )

    def _scan(self) -> list[ItemRef]:
        if not self._root.is_dir():
            logger.warning("Library root does not exist: {}", self._root)
            return []
        images: list[Path] = []
        videos: list[Path] = []
        for dirpath, _dirnames, filenames in os.walk(self._root):
            parent = Path(dirpath)
            for name in filenames:
                ext = os.path.splitext(name)[1].lower()
                if ext in IMAGE_EXTS:
                    images.append(parent / name)
                elif ext in VIDEO_EXTS:
                    videos.append(parent / name)

        image_keys = {_pair_key(p) for p in images}
        live_clips: dict[tuple[Path, str], Path] = {}
        standalone: list[Path] = []
        for path in videos:
            key = _pair_key(path)
            if key in image_keys:
                # Motion clip of a live photo; listed through its still image
                live_clips[key] = path
            else:
                standalone.append(path)
        self._live_clips = live_clips

        dates: dict[Path, tuple[tuple[int, int], datetime]] = {}
        items: list[ItemRef] = []
        for path in images + standalone:
            item = self._item_for(path, live_clips, dates)
            if item is not None:
                items.append(item)
        self._dates = dates
        logger.debug("Scanned {}: {} items", self._root, len(items))
        return items

    def _item_for(
        self,
        path: Path,
        live_clips: dict[tuple[Path, str], Path],
        dates: dict[Path, tuple[tuple[int, int], datetime]],
    ) -> ItemRef | None:
        try:
            st = path.stat()
        except OSError as ex:
            logger.debug("Skipping vanished file {}: {}", path, ex)
            return None
        kind = self._classify(path, live_clips)
        stamp = (st.st_mtime_ns, st.st_size)
        cached = self._dates.get(path)
        if cached is not None and cached[0] == stamp:
            created = cached[1]
        else:
            created = None
            if kind is not MediaKind.VIDEO:
                created = get_exif_datetime_original(path)
            if created is None:
                # ctime on non-Windows systems; best effort
                created = datetime.fromtimestamp(st.st_ctime)
        dates[path] = (stamp, created)
        item_id = path.relative_to(self._root).as_posix()
        return ItemRef(
            id=item_id, kind=kind, created_at=created, is_favorite=item_id in self._favorites
        )

    def _classify(
        self, path: Path, live_clips: dict[tuple[Path, str], Path] | None = None
    ) -> MediaKind:
        if path.suffix.lower() in VIDEO_EXTS:
            return MediaKind.VIDEO
        name = path.name.lower()
        if any(marker in name for marker in SCREENSHOT_MARKERS):
            return MediaKind.SCREENSHOT
        if self._live_pair(path, live_clips) is not None:
            return MediaKind.LIVE
        return MediaKind.PHOTO

    def _live_pair(
        self, image_path: Path, live_clips: dict[tuple[Path, str], Path] | None = None
    ) -> Path | None:
        """Return the motion clip paired with `image_path`, if any.

        During a scan the clip map of that scan is authoritative. Single-item
        lookups consult the latest scan, then probe the few possible clip
        names next to the image.
        """
        if image_path.suffix.lower() not in IMAGE_EXTS:
            return None
        key = _pair_key(image_path)
        if live_clips is not None:
            return live_clips.get(key)
        clip = self._live_clips.get(key)
        if clip is not None and clip.is_file():
            return clip
        for ext in VIDEO_EXTS:
            for suffix in (ext, ext.upper()):
                candidate = image_path.with_suffix(suffix)
                if candidate.is_file():
                    return candidate
        return None

    def _matches(self, item: ItemRef, category: PhotoCategory, scope: MediaScope) -> bool:
        if scope is MediaScope.VIDEOS:
            return item.kind is MediaKind.VIDEO
        if item.kind is MediaKind.VIDEO:
            return False
        if category is PhotoCategory.FAVORITES:
            return item.is_favorite
        if category is PhotoCategory.SCREENSHOTS:
            return item.kind is MediaKind.SCREENSHOT
        if category is PhotoCategory.LIVE:
            return item.kind is MediaKind.LIVE
        # ALL, and SELFIES which a folder cannot tell apart
        return True

    def _resolve_kinds(self, item_ids: list[str]) -> dict[str, MediaKind]:
        kinds: dict[str, MediaKind] = {}
        for item_id in item_ids:
            path = self._path_for(item_id)
            if path is not None and path.is_file():
                kinds[item_id] = self._classify(path)
        return kinds

    def _path_for(self, item_id: str) -> Path | None:
        path = (self._root / item_id).resolve()
        if path != self._root and self._root not in path.parents:
            return None
        return path

    def _delete_to_recycle(self, item_ids: list[str]) -> tuple[list[str], list[tuple[str, str]]]:
        """Send items (and live clips) to the recycle bin; report per-id results.

        Files that are already gone count as deleted so a retried batch does
        not fail on the items the previous attempt managed to remove.
        """
        success: list[str] = []
        failed: list[tuple[str, str]] = []
        for item_id in item_ids:
            path = self._path_for(item_id)
            if path is None:
                failed.append((item_id, "Outside library root"))
                continue
            if not path.exists():
                logger.warning("Already gone, treating as deleted: {}", path)
                success.append(item_id)
                continue
            targets = [path]
            pair = self._live_pair(path)
            if pair is not None:
                targets.append(pair)
            try:
                for target in targets:
                    self._send_to_trash(target)
                success.append(item_id)
            except OSError as ex:
                logger.error("Delete failed for {}: {}", path, ex)
                failed.append((item_id, str(ex)))
        return success, failed

    @staticmethod
    def _send_to_trash(path: Path) -> None:
        normalized = os.path.normpath(str(path))
        try:
            send2trash(normalized)
        except (UnicodeEncodeError, OSError) as ex:
            logger.warning("Failed to delete with normalized path {}: {}", normalized, ex)
            # Retry with the absolute path; some platforms reject normalized forms
            send2trash(os.path.abspath(str(path)))

    def _write_delete_log(self, success: list[str], failed: list[tuple[str, str]]) -> None:
        if self._delete_log_dir is None:
            return
        try:
            self._delete_log_dir.mkdir(parents=True, exist_ok=True)
            ts = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_path = self._delete_log_dir / f"delete_{ts}.csv"
            with log_path.open("w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(["ItemId", "FilePath", "Success", "Reason"])
                for item_id in success:
                    writer.writerow([item_id, str(self._root / item_id), 1, ""])
                for item_id, reason in failed:
                    writer.writerow([item_id, str(self._root / item_id), 0, reason])
            logger.info(
                "Delete log written: {} ({} success, {} failed)",
                log_path,
                len(success),
                len(failed),
            )
        except (OSError, ValueError) as ex:
            logger.error("Write delete log failed: {}", ex)
