"""
Metadata Repository Port.

Every owner-scoped read and every mutation takes the owner as an explicit
argument so the filter is applied in the data layer, not only by callers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from assetstore.core.entities import AssetRecord
from assetstore.core.ports.thumbnails import DerivedAsset


class AssetRecordRepoPort(Protocol):
    """Repository interface for asset records."""

    def create(self, record: AssetRecord) -> AssetRecord:
        """
        Insert a new record.

        Raises:
            DuplicateRecordError: If storage_name is already taken
            RepositoryError: On any other database failure
        """
        ...

    def find_by_storage_name(self, storage_name: str) -> AssetRecord | None:
        """Get record by storage name."""
        ...

    def list_by_owner(
        self,
        owner_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[AssetRecord], int]:
        """List one owner's records, newest first. Returns (items, total_count)."""
        ...

    def delete_by_storage_name(self, storage_name: str, *, owner_id: str) -> bool:
        """Delete the owner's record. Returns False if nothing matched."""
        ...

    def attach_derived(self, storage_name: str, derived: DerivedAsset) -> bool:
        """Set derived fields once. Returns False if the record is gone or already derived."""
        ...

    def list_created_before(
        self,
        cutoff: datetime,
        *,
        limit: int = 500,
        offset: int = 0,
    ) -> list[AssetRecord]:
        """Records with created_at strictly before cutoff, oldest first."""
        ...

    def list_all(self, *, limit: int = 500, offset: int = 0) -> list[AssetRecord]:
        """All records in creation order, for reconciliation scans."""
        ...


class RepositoryError(Exception):
    """Raised when the metadata store fails."""


class DuplicateRecordError(RepositoryError):
    """Raised when a storage name is already recorded."""

    def __init__(self, storage_name: str) -> None:
        self.storage_name = storage_name
        super().__init__(f"Record already exists: {storage_name}")
