"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any

from core.models import PhotoCategory

DEFAULT_DATA_DIR = Path.home() / ".swipe-triage"
DEFAULT_BATCH_SIZE = 50
DEFAULT_VIDEO_BATCH_SIZE = 20


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access."""

    def __init__(self, settings_path: str | Path) -> None:
        self._path = Path(settings_path)
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            self._data = json.load(f)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JsonSettings:
        """Build settings from an in-memory mapping."""
        obj = cls.__new__(cls)
        obj._path = Path("<memory>")
        obj._data = data
        return obj

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node


def _parse_batch_size(value: Any, key: str, default: int) -> int:
    if value is None:
        return default
    try:
        size = int(value)
    except (TypeError, ValueError) as ex:
        raise ValueError(f"{key} must be an integer, got {value!r}") from ex
    if size < 0:
        raise ValueError(f"{key} must be >= 0 (0 = unlimited), got {size}")
    return size


@dataclass
class TriageConfig:
    """Validated configuration for building the triage services.

    Attributes:
        library_root: Folder scanned for media.
        data_dir: Directory holding the ledger files.
        delete_log_dir: Directory for delete audit CSVs (None disables them).
        batch_size: Image deck size; 0 means unlimited.
        video_batch_size: Video deck size; 0 means unlimited.
        category: Initial image category.
        review_delay_seconds: Debounce before the review prompt.
        favorites: Item ids treated as favorites.
    """

    library_root: Path
    data_dir: Path = DEFAULT_DATA_DIR
    delete_log_dir: Path | None = None
    batch_size: int = DEFAULT_BATCH_SIZE
    video_batch_size: int = DEFAULT_VIDEO_BATCH_SIZE
    category: PhotoCategory = PhotoCategory.ALL
    review_delay_seconds: float = 0.5
    favorites: list[str] = field(default_factory=list)

    @property
    def reviewed_path(self) -> Path:
        return self.data_dir / "reviewed.json"

    @property
    def trash_path(self) -> Path:
        return self.data_dir / "trash.json"

    @classmethod
    def from_settings(cls, settings: JsonSettings) -> TriageConfig:
        """Read and validate triage keys from `settings`.

        Raises:
            ValueError: On an unknown category or a malformed batch size.
        """
        raw_category = settings.get("triage.category", PhotoCategory.ALL.value)
        try:
            category = PhotoCategory(str(raw_category).lower())
        except ValueError as ex:
            allowed = ", ".join(c.value for c in PhotoCategory)
            raise ValueError(
                f"Unknown category {raw_category!r}; expected one of: {allowed}"
            ) from ex

        data_dir = settings.get("storage.data_dir")
        delete_log_dir = settings.get("storage.delete_log_dir")
        favorites = settings.get("library.favorites", [])
        return cls(
            library_root=Path(settings.get("library.root", ".")).expanduser(),
            data_dir=Path(data_dir).expanduser() if data_dir else DEFAULT_DATA_DIR,
            delete_log_dir=Path(delete_log_dir).expanduser() if delete_log_dir else None,
            batch_size=_parse_batch_size(
                settings.get("triage.batch_size"), "triage.batch_size", DEFAULT_BATCH_SIZE
            ),
            video_batch_size=_parse_batch_size(
                settings.get("triage.video_batch_size"),
                "triage.video_batch_size",
                DEFAULT_VIDEO_BATCH_SIZE,
            ),
            category=category,
            review_delay_seconds=float(settings.get("triage.review_delay_seconds", 0.5)),
            favorites=[str(x) for x in favorites] if isinstance(favorites, list) else [],
        )
