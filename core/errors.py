"""Error types raised by the triage core and its collaborators."""

from __future__ import annotations


class TriageError(Exception):
    """Base class for recoverable triage failures."""


class SizeResolutionFailed(TriageError):
    """The source could not report a byte size for an item."""

    def __init__(self, item_id: str, reason: str = "") -> None:
        super().__init__(f"Size resolution failed for {item_id}: {reason}".rstrip(": "))
        self.item_id = item_id
        self.reason = reason


class PhysicalDeleteFailed(TriageError):
    """The source refused or failed to delete one or more items.

    Attributes:
        failed: Tuples of (item_id, reason) for items that were not deleted.
    """

    def __init__(self, message: str, failed: list[tuple[str, str]] | None = None) -> None:
        super().__init__(message)
        self.failed = list(failed or [])


class PersistenceWriteFailed(TriageError):
    """A ledger could not be written to durable storage."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Write failed for {path}: {reason}")
        self.path = path
        self.reason = reason
