"""
Assets component input/output models and errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO

from assetstore.core.entities import AssetRecord

# --- Validation Error ---


@dataclass(frozen=True)
class AssetValidationError:
    """Upload error with actionable message."""

    code: str
    message: str
    field: str = "file"


# --- Service Errors ---


class AssetError(Exception):
    """Base class for asset service errors."""

    def __init__(self, storage_name: str, message: str) -> None:
        self.storage_name = storage_name
        super().__init__(message)


class AssetNotFoundError(AssetError):
    """No record exists for the storage name."""

    def __init__(self, storage_name: str) -> None:
        super().__init__(storage_name, f"Asset {storage_name} not found")


class AssetAccessDeniedError(AssetError):
    """The requester may not act on this asset."""

    def __init__(self, storage_name: str, requester_id: str) -> None:
        self.requester_id = requester_id
        super().__init__(storage_name, f"Requester {requester_id} may not modify {storage_name}")


class StorageInconsistencyError(AssetError):
    """A record exists but its primary bytes are missing from storage."""

    def __init__(self, storage_name: str, location: str) -> None:
        self.location = location
        super().__init__(storage_name, f"Bytes missing for recorded asset {storage_name}")


# --- Configuration Models ---


@dataclass(frozen=True)
class UploadConstraints:
    """Per-call upload limits."""

    max_size_bytes: int
    allowed_mime_types: frozenset[str]
    max_filename_length: int = 255


# --- Input Models ---


@dataclass(frozen=True)
class UploadFileInput:
    """One file in an upload request."""

    data: bytes | BinaryIO
    filename: str
    content_type: str


@dataclass(frozen=True)
class UploadAssetInput:
    """Input for uploading a single asset."""

    file: UploadFileInput
    owner_id: str
    constraints: UploadConstraints | None = None
    generate_thumbnail: bool = True


@dataclass(frozen=True)
class UploadBatchInput:
    """Input for uploading several files in one request."""

    files: list[UploadFileInput]
    owner_id: str
    constraints: UploadConstraints | None = None
    generate_thumbnail: bool = True


@dataclass(frozen=True)
class ListOwnerAssetsInput:
    """Input for listing one owner's assets. page is 1-based."""

    owner_id: str
    page: int = 1
    limit: int = 20


# --- Output Models ---


@dataclass(frozen=True)
class UploadOutput:
    """Outcome for one uploaded file."""

    filename: str
    record: AssetRecord | None = None
    thumbnail_pending: bool = False
    errors: list[AssetValidationError] = field(default_factory=list)
    success: bool = True

    @property
    def storage_name(self) -> str | None:
        return self.record.storage_name if self.record else None

    @property
    def url(self) -> str | None:
        return self.record.url if self.record else None

    @property
    def error(self) -> str | None:
        return self.errors[0].message if self.errors else None


@dataclass(frozen=True)
class BatchUploadOutput:
    """Per-file outcomes, in request order."""

    results: list[UploadOutput] = field(default_factory=list)
    errors: list[AssetValidationError] = field(default_factory=list)
    success: bool = True

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)


@dataclass(frozen=True)
class AssetListOutput:
    """One page of an owner's assets."""

    items: list[AssetRecord]
    total: int
    page: int
    limit: int
    errors: list[AssetValidationError] = field(default_factory=list)
    success: bool = True

    @property
    def pages(self) -> int:
        if self.limit <= 0:
            return 0
        return -(-self.total // self.limit)


@dataclass
class DownloadOutput:
    """Open byte stream plus the record describing it. Caller closes stream."""

    stream: BinaryIO
    record: AssetRecord


@dataclass(frozen=True)
class DeleteOutput:
    """Result of a completed delete sequence."""

    record: AssetRecord
    primary_removed: bool
    derived_removed: bool
    step_failures: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class VerifyOutput:
    """Checksum comparison for one stored asset."""

    storage_name: str
    expected: str
    actual: str

    @property
    def ok(self) -> bool:
        return self.expected == self.actual
