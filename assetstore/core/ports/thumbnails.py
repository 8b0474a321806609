"""
Derived-Asset (thumbnail) Port.

Derivation is best-effort: callers catch ThumbnailError and keep the
base record without derived fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class DerivedAsset:
    """Location and source dimensions of a generated thumbnail."""

    location: str
    width: int
    height: int


class ThumbnailerPort(Protocol):
    def supports(self, mime_type: str) -> bool:
        """Whether thumbnails can be derived for this content type."""
        ...

    def derive(self, storage_name: str, mime_type: str) -> DerivedAsset | None:
        """
        Derive a bounded-size thumbnail for the stored asset.

        Returns:
            DerivedAsset, or None when the type is skipped

        Raises:
            ThumbnailError: If decoding, resizing or storing failed
        """
        ...

    def read_dimensions(self, storage_name: str, mime_type: str) -> tuple[int, int] | None:
        """(width, height) of the stored image, or None if it can't be read."""
        ...

    def discard(self, location: str) -> bool:
        """Remove a derived object. Returns False if it didn't exist."""
        ...


class DeriveQueuePort(Protocol):
    """Asynchronous derivation queue."""

    def submit(self, storage_name: str, mime_type: str) -> bool:
        """Queue a derive task. Returns False if the task was not accepted."""
        ...


class ThumbnailError(Exception):
    """Raised when a thumbnail could not be derived."""

    def __init__(self, storage_name: str, reason: str) -> None:
        self.storage_name = storage_name
        self.reason = reason
        super().__init__(f"Thumbnail derivation failed for {storage_name}: {reason}")
