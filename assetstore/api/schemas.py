from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from assetstore.core.entities import AssetRecord


# --- Assets ---
class AssetResponse(BaseModel):
    storage_name: str
    original_name: str
    mime_type: str
    size_bytes: int
    checksum: str
    width: int | None = None
    height: int | None = None
    owner_id: str
    created_at: datetime
    state: Literal["stored", "derived"]
    url: str
    thumbnail_url: str | None = None

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, record: AssetRecord, base_url: str = "") -> "AssetResponse":
        """Public view of a record; storage locations stay internal."""
        return cls(
            storage_name=record.storage_name,
            original_name=record.original_name,
            mime_type=record.mime_type,
            size_bytes=record.size_bytes,
            checksum=record.checksum,
            width=record.width,
            height=record.height,
            owner_id=record.owner_id,
            created_at=record.created_at,
            state=record.state,
            url=f"{base_url}{record.url}",
            thumbnail_url=f"{base_url}{record.thumbnail_url}" if record.thumbnail_url else None,
        )


class UploadResultItem(BaseModel):
    filename: str
    success: bool
    file: AssetResponse | None = None
    thumbnail_pending: bool = False
    error: str | None = None
    code: str | None = None


class UploadBatchResponse(BaseModel):
    results: list[UploadResultItem]
    succeeded: int
    failed: int


class AssetListResponse(BaseModel):
    items: list[AssetResponse]
    total: int
    page: int
    limit: int
    pages: int


class DeleteResponse(BaseModel):
    success: bool
    message: str
