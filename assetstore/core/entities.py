"""
Domain entities for the asset storage service.

AssetRecord is the only persistent entity. Records are immutable once
created, except for the derived (thumbnail) fields which may be attached
later by the background derivation pool.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

AssetState = Literal["stored", "derived"]


def utc_now() -> datetime:
    return datetime.now(UTC)


class AssetRecord(BaseModel):
    """
    Metadata describing one stored asset.

    Invariants:
    - checksum is the SHA-256 of the bytes on durable storage, computed after the write
    - storage_name is unique and never a content hash
    - owner_id is the only field consulted for authorization
    """

    id: UUID = Field(default_factory=uuid4)
    storage_name: str
    original_name: str
    mime_type: str
    size_bytes: int = Field(ge=0)
    checksum: str
    storage_location: str
    derived_location: str | None = None
    width: int | None = None
    height: int | None = None
    owner_id: str
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def state(self) -> AssetState:
        return "derived" if self.derived_location else "stored"

    @property
    def url(self) -> str:
        return f"/uploads/{self.storage_name}"

    @property
    def thumbnail_url(self) -> str | None:
        if not self.derived_location:
            return None
        return f"/thumbnails/{self.derived_location.rsplit('/', 1)[-1]}"
