"""
Assets component - upload pipeline, retrieval and deletion.

Provides validated uploads with durable writes, post-write checksums,
best-effort thumbnails, owner-scoped listing and authorized deletion.

Upload order (per file, strictly sequential):
    validate -> name -> write -> hash -> derive -> create record

Invariants:
- Rejected uploads leave no bytes and no record
- checksum is computed from the bytes on disk, after the write
- storage names are generated before content is seen (no dedup)
- A record without bytes is a StorageInconsistencyError, never NotFound
- Every delete step is attempted even if an earlier one failed
"""

from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime
from typing import BinaryIO

from assetstore.core.entities import AssetRecord
from assetstore.core.ports.db import RepositoryError
from assetstore.core.ports.storage import KeyNotFoundError, StorageError
from assetstore.core.ports.thumbnails import DerivedAsset, ThumbnailError
from assetstore.rules.models import DEFAULT_ALLOWED_MIME_TYPES, MIB, UploadsRules

from .models import (
    AssetAccessDeniedError,
    AssetListOutput,
    AssetNotFoundError,
    AssetValidationError,
    BatchUploadOutput,
    DeleteOutput,
    DownloadOutput,
    ListOwnerAssetsInput,
    StorageInconsistencyError,
    UploadAssetInput,
    UploadBatchInput,
    UploadConstraints,
    UploadFileInput,
    UploadOutput,
    VerifyOutput,
)
from .ports import (
    AssetRecordRepoPort,
    AuthorizationPolicy,
    ClockPort,
    DeriveQueuePort,
    StoragePort,
    ThumbnailerPort,
    owner_only,
)

logger = logging.getLogger(__name__)

# --- Default Configuration ---

DEFAULT_CONSTRAINTS = UploadConstraints(
    max_size_bytes=100 * MIB,
    allowed_mime_types=frozenset(DEFAULT_ALLOWED_MIME_TYPES),
)

DEFAULT_MAX_FILES_PER_BATCH = 10
MAX_PAGE_SIZE = 100

_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,16}$")


def constraints_from_rules(rules: UploadsRules) -> UploadConstraints:
    return UploadConstraints(
        max_size_bytes=rules.max_upload_bytes,
        allowed_mime_types=frozenset(rules.allowlist_mime_types),
        max_filename_length=rules.max_filename_length,
    )


# --- Helper Functions ---


def payload_size(data: bytes | BinaryIO) -> int:
    """Byte length of the payload without consuming it."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        return len(data)

    start = data.tell()
    data.seek(0, 2)
    end = data.tell()
    data.seek(start)
    return end - start


def is_image_mime(mime_type: str) -> bool:
    return mime_type.startswith("image/")


def source_dimensions(
    thumbnailer: ThumbnailerPort | None, storage_name: str, mime_type: str
) -> tuple[int | None, int | None]:
    """Width and height of a stored image, or (None, None) when unreadable."""
    if thumbnailer is None or not is_image_mime(mime_type):
        return None, None
    size = thumbnailer.read_dimensions(storage_name, mime_type)
    return size if size else (None, None)


def safe_extension(filename: str) -> str:
    """Lower-cased extension of the original name, or "" if it isn't a plain one."""
    dot = filename.rfind(".")
    if dot <= 0:
        return ""
    ext = filename[dot:]
    return ext.lower() if _EXTENSION_RE.match(ext) else ""


def generate_storage_name(original_name: str, now: datetime) -> str:
    """
    Build a collision-resistant storage name.

    Format: {epoch_millis}-{16 random hex chars}{.ext}
    """
    millis = int(now.timestamp() * 1000)
    return f"{millis}-{secrets.token_hex(8)}{safe_extension(original_name)}"


# --- Validation Functions ---


def validate_size(size: int, constraints: UploadConstraints) -> list[AssetValidationError]:
    if size > constraints.max_size_bytes:
        return [
            AssetValidationError(
                code="file_too_large",
                message=(
                    f"File size {size} bytes exceeds maximum of "
                    f"{constraints.max_size_bytes} bytes"
                ),
            )
        ]
    return []


def validate_mime_type(
    mime_type: str, constraints: UploadConstraints
) -> list[AssetValidationError]:
    if mime_type not in constraints.allowed_mime_types:
        return [
            AssetValidationError(
                code="unsupported_type",
                message=(
                    f"MIME type '{mime_type}' is not allowed. "
                    f"Allowed types: {', '.join(sorted(constraints.allowed_mime_types))}"
                ),
                field="content_type",
            )
        ]
    return []


def validate_filename(
    filename: str, constraints: UploadConstraints
) -> list[AssetValidationError]:
    if not filename or not filename.strip() or len(filename) > constraints.max_filename_length:
        return [
            AssetValidationError(
                code="invalid_filename",
                message=(
                    "Filename must be non-empty and at most "
                    f"{constraints.max_filename_length} characters"
                ),
                field="filename",
            )
        ]
    return []


def validate_upload(
    file: UploadFileInput, constraints: UploadConstraints
) -> tuple[int, list[AssetValidationError]]:
    """
    Check a file against constraints before any byte is written.

    Returns (size, errors).
    """
    size = payload_size(file.data)
    errors: list[AssetValidationError] = []
    errors.extend(validate_filename(file.filename, constraints))
    errors.extend(validate_mime_type(file.content_type, constraints))
    errors.extend(validate_size(size, constraints))
    return size, errors


def _failed(filename: str, code: str, message: str) -> UploadOutput:
    return UploadOutput(
        filename=filename,
        errors=[AssetValidationError(code=code, message=message)],
        success=False,
    )


def _remove_quietly(storage: StoragePort, key: str) -> None:
    try:
        storage.delete(key)
    except (StorageError, OSError):
        logger.exception("Cleanup failed for %s", key)


# --- Component Entry Points ---


def run_upload(
    inp: UploadAssetInput,
    *,
    repo: AssetRecordRepoPort,
    storage: StoragePort,
    clock: ClockPort,
    thumbnailer: ThumbnailerPort | None = None,
    derive_queue: DeriveQueuePort | None = None,
) -> UploadOutput:
    """
    Upload one file.

    Validation failures and write failures are returned on the output;
    thumbnail failures are logged and the upload still succeeds.
    """
    file = inp.file
    constraints = inp.constraints or DEFAULT_CONSTRAINTS

    _, errors = validate_upload(file, constraints)
    if errors:
        return UploadOutput(filename=file.filename, errors=errors, success=False)

    storage_name = generate_storage_name(file.filename, clock.now_utc())

    try:
        stored = storage.put(storage_name, file.data)
    except StorageError as e:
        logger.error(
            "Write failed for %s (owner=%s, op=upload): %s", storage_name, inp.owner_id, e
        )
        return _failed(file.filename, "storage_write_failed", "File could not be stored")

    if stored.size_bytes > constraints.max_size_bytes:
        _remove_quietly(storage, storage_name)
        return UploadOutput(
            filename=file.filename,
            errors=validate_size(stored.size_bytes, constraints),
            success=False,
        )

    try:
        checksum = storage.sha256(storage_name)
    except StorageError as e:
        logger.error(
            "Checksum read failed for %s (owner=%s, op=upload): %s",
            storage_name,
            inp.owner_id,
            e,
        )
        _remove_quietly(storage, storage_name)
        return _failed(file.filename, "storage_write_failed", "File could not be stored")

    derived: DerivedAsset | None = None
    wants_thumbnail = (
        inp.generate_thumbnail
        and thumbnailer is not None
        and is_image_mime(file.content_type)
        and thumbnailer.supports(file.content_type)
    )
    try:
        if wants_thumbnail and derive_queue is None:
            try:
                derived = thumbnailer.derive(storage_name, file.content_type)  # type: ignore[union-attr]
            except ThumbnailError as e:
                logger.warning("Thumbnail skipped for %s: %s", storage_name, e.reason)

        if derived:
            width, height = derived.width, derived.height
        else:
            width, height = source_dimensions(thumbnailer, storage_name, file.content_type)

        record = AssetRecord(
            storage_name=storage_name,
            original_name=file.filename,
            mime_type=file.content_type,
            size_bytes=stored.size_bytes,
            checksum=checksum,
            storage_location=storage_name,
            derived_location=derived.location if derived else None,
            width=width,
            height=height,
            owner_id=inp.owner_id,
            created_at=clock.now_utc(),
        )
        repo.create(record)
    except RepositoryError as e:
        logger.error(
            "Record create failed for %s (owner=%s, op=upload): %s", storage_name, inp.owner_id, e
        )
        _remove_quietly(storage, storage_name)
        if derived:
            _remove_quietly(storage, derived.location)
        return _failed(file.filename, "metadata_write_failed", "File could not be stored")
    except Exception:
        # No record will track these bytes
        logger.exception(
            "Upload aborted after write for %s (owner=%s, op=upload)", storage_name, inp.owner_id
        )
        _remove_quietly(storage, storage_name)
        if derived:
            _remove_quietly(storage, derived.location)
        raise

    pending = False
    if wants_thumbnail and derive_queue is not None:
        pending = derive_queue.submit(storage_name, file.content_type)

    logger.info(
        "Stored %s for owner %s (%d bytes, sha256=%s)",
        storage_name,
        inp.owner_id,
        record.size_bytes,
        checksum,
    )
    return UploadOutput(filename=file.filename, record=record, thumbnail_pending=pending)


def run_upload_batch(
    inp: UploadBatchInput,
    *,
    repo: AssetRecordRepoPort,
    storage: StoragePort,
    clock: ClockPort,
    thumbnailer: ThumbnailerPort | None = None,
    derive_queue: DeriveQueuePort | None = None,
    max_files: int = DEFAULT_MAX_FILES_PER_BATCH,
) -> BatchUploadOutput:
    """
    Upload several files independently.

    One file's failure is reported in its own slot and never stops the others.
    """
    if not inp.files:
        return BatchUploadOutput(
            errors=[AssetValidationError(code="no_files", message="No files were provided")],
            success=False,
        )

    if len(inp.files) > max_files:
        return BatchUploadOutput(
            errors=[
                AssetValidationError(
                    code="too_many_files",
                    message=f"At most {max_files} files may be uploaded at once",
                )
            ],
            success=False,
        )

    results: list[UploadOutput] = []
    for file in inp.files:
        single = UploadAssetInput(
            file=file,
            owner_id=inp.owner_id,
            constraints=inp.constraints,
            generate_thumbnail=inp.generate_thumbnail,
        )
        try:
            result = run_upload(
                single,
                repo=repo,
                storage=storage,
                clock=clock,
                thumbnailer=thumbnailer,
                derive_queue=derive_queue,
            )
        except Exception:
            logger.exception("Unexpected failure uploading %s for %s", file.filename, inp.owner_id)
            result = _failed(file.filename, "internal_error", "File could not be stored")
        results.append(result)

    return BatchUploadOutput(results=results)


def run_get_info(storage_name: str, *, repo: AssetRecordRepoPort) -> AssetRecord:
    record = repo.find_by_storage_name(storage_name)
    if record is None:
        raise AssetNotFoundError(storage_name)
    return record


def run_download(
    storage_name: str,
    *,
    repo: AssetRecordRepoPort,
    storage: StoragePort,
) -> DownloadOutput:
    """
    Open the primary bytes of an asset.

    Raises:
        AssetNotFoundError: No record
        StorageInconsistencyError: Record exists but bytes are missing
    """
    record = run_get_info(storage_name, repo=repo)
    try:
        stream = storage.open(record.storage_location)
    except KeyNotFoundError as e:
        logger.error(
            "Storage inconsistency: %s (owner=%s, op=download) has no bytes at %s",
            storage_name,
            record.owner_id,
            record.storage_location,
        )
        raise StorageInconsistencyError(storage_name, record.storage_location) from e
    return DownloadOutput(stream=stream, record=record)


def run_delete(
    storage_name: str,
    requester_id: str,
    *,
    repo: AssetRecordRepoPort,
    storage: StoragePort,
    authorize: AuthorizationPolicy = owner_only,
    operation: str = "delete",
) -> DeleteOutput:
    """
    Delete an asset: primary bytes, then derived bytes, then the record.

    Raises:
        AssetNotFoundError: No record (including a repeated delete)
        AssetAccessDeniedError: authorize() rejected the requester
        RepositoryError: The record could not be removed (bytes already were)
    """
    record = run_get_info(storage_name, repo=repo)
    if not authorize(record, requester_id):
        raise AssetAccessDeniedError(storage_name, requester_id)

    failures: list[str] = []

    primary_removed = False
    try:
        primary_removed = storage.delete(record.storage_location)
        if not primary_removed:
            logger.error(
                "Storage inconsistency: %s (owner=%s, op=%s) had no bytes at %s",
                storage_name,
                record.owner_id,
                operation,
                record.storage_location,
            )
    except (StorageError, OSError) as e:
        failures.append("primary")
        logger.warning("Could not remove primary bytes of %s: %s", storage_name, e)

    derived_removed = False
    if record.derived_location:
        try:
            derived_removed = storage.delete(record.derived_location)
        except (StorageError, OSError) as e:
            failures.append("derived")
            logger.warning("Could not remove thumbnail of %s: %s", storage_name, e)

    try:
        deleted = repo.delete_by_storage_name(storage_name, owner_id=record.owner_id)
    except RepositoryError:
        logger.error(
            "Record delete failed for %s (owner=%s, op=%s)", storage_name, record.owner_id, operation
        )
        raise

    if not deleted:
        # Lost a race with another delete of the same asset
        raise AssetNotFoundError(storage_name)

    logger.info("Deleted %s (owner=%s, op=%s)", storage_name, record.owner_id, operation)
    return DeleteOutput(
        record=record,
        primary_removed=primary_removed,
        derived_removed=derived_removed,
        step_failures=failures,
    )


def run_list(inp: ListOwnerAssetsInput, *, repo: AssetRecordRepoPort) -> AssetListOutput:
    """List one owner's assets, newest first, with offset pagination."""
    errors: list[AssetValidationError] = []
    if inp.page < 1:
        errors.append(
            AssetValidationError(code="invalid_page", message="page must be >= 1", field="page")
        )
    if inp.limit < 1 or inp.limit > MAX_PAGE_SIZE:
        errors.append(
            AssetValidationError(
                code="invalid_limit",
                message=f"limit must be between 1 and {MAX_PAGE_SIZE}",
                field="limit",
            )
        )
    if errors:
        return AssetListOutput(
            items=[], total=0, page=inp.page, limit=inp.limit, errors=errors, success=False
        )

    items, total = repo.list_by_owner(
        inp.owner_id, limit=inp.limit, offset=(inp.page - 1) * inp.limit
    )
    return AssetListOutput(items=items, total=total, page=inp.page, limit=inp.limit)


def run_verify(
    storage_name: str,
    *,
    repo: AssetRecordRepoPort,
    storage: StoragePort,
) -> VerifyOutput:
    """Recompute the checksum of stored bytes and compare it with the record."""
    record = run_get_info(storage_name, repo=repo)
    try:
        actual = storage.sha256(record.storage_location)
    except KeyNotFoundError as e:
        logger.error(
            "Storage inconsistency: %s (owner=%s, op=verify) has no bytes",
            storage_name,
            record.owner_id,
        )
        raise StorageInconsistencyError(storage_name, record.storage_location) from e

    result = VerifyOutput(storage_name=storage_name, expected=record.checksum, actual=actual)
    if not result.ok:
        logger.error(
            "Checksum mismatch for %s (owner=%s): expected %s, got %s",
            storage_name,
            record.owner_id,
            record.checksum,
            actual,
        )
    return result


def run_find_inconsistencies(
    *,
    repo: AssetRecordRepoPort,
    storage: StoragePort,
    batch_size: int = 500,
) -> list[AssetRecord]:
    """Scan every record and return those whose primary bytes are missing."""
    missing: list[AssetRecord] = []
    offset = 0
    while True:
        batch = repo.list_all(limit=batch_size, offset=offset)
        if not batch:
            break
        for record in batch:
            if not storage.exists(record.storage_location):
                logger.error(
                    "Storage inconsistency: %s (owner=%s, op=check) has no bytes",
                    record.storage_name,
                    record.owner_id,
                )
                missing.append(record)
        offset += len(batch)
    return missing


# --- Service Class ---


class AssetService:
    """
    Asset service wrapping the functional entry points with bound ports.
    """

    def __init__(
        self,
        repo: AssetRecordRepoPort,
        storage: StoragePort,
        clock: ClockPort,
        *,
        thumbnailer: ThumbnailerPort | None = None,
        derive_queue: DeriveQueuePort | None = None,
        constraints: UploadConstraints = DEFAULT_CONSTRAINTS,
        max_files_per_batch: int = DEFAULT_MAX_FILES_PER_BATCH,
        authorize: AuthorizationPolicy = owner_only,
    ) -> None:
        self._repo = repo
        self._storage = storage
        self._clock = clock
        self._thumbnailer = thumbnailer
        self._derive_queue = derive_queue
        self.constraints = constraints
        self.max_files_per_batch = max_files_per_batch
        self._authorize = authorize

    def upload(
        self,
        file: UploadFileInput,
        owner_id: str,
        *,
        constraints: UploadConstraints | None = None,
        generate_thumbnail: bool = True,
    ) -> UploadOutput:
        inp = UploadAssetInput(
            file=file,
            owner_id=owner_id,
            constraints=constraints or self.constraints,
            generate_thumbnail=generate_thumbnail,
        )
        return run_upload(
            inp,
            repo=self._repo,
            storage=self._storage,
            clock=self._clock,
            thumbnailer=self._thumbnailer,
            derive_queue=self._derive_queue,
        )

    def upload_batch(
        self,
        files: list[UploadFileInput],
        owner_id: str,
        *,
        constraints: UploadConstraints | None = None,
        generate_thumbnail: bool = True,
    ) -> BatchUploadOutput:
        inp = UploadBatchInput(
            files=files,
            owner_id=owner_id,
            constraints=constraints or self.constraints,
            generate_thumbnail=generate_thumbnail,
        )
        return run_upload_batch(
            inp,
            repo=self._repo,
            storage=self._storage,
            clock=self._clock,
            thumbnailer=self._thumbnailer,
            derive_queue=self._derive_queue,
            max_files=self.max_files_per_batch,
        )

    def get_info(self, storage_name: str) -> AssetRecord:
        return run_get_info(storage_name, repo=self._repo)

    def download(self, storage_name: str) -> DownloadOutput:
        return run_download(storage_name, repo=self._repo, storage=self._storage)

    def delete(self, storage_name: str, requester_id: str, *, operation: str = "delete") -> DeleteOutput:
        return run_delete(
            storage_name,
            requester_id,
            repo=self._repo,
            storage=self._storage,
            authorize=self._authorize,
            operation=operation,
        )

    def list_owner_assets(self, owner_id: str, page: int = 1, limit: int = 20) -> AssetListOutput:
        return run_list(ListOwnerAssetsInput(owner_id=owner_id, page=page, limit=limit), repo=self._repo)

    def verify(self, storage_name: str) -> VerifyOutput:
        return run_verify(storage_name, repo=self._repo, storage=self._storage)

    def find_inconsistencies(self, batch_size: int = 500) -> list[AssetRecord]:
        return run_find_inconsistencies(repo=self._repo, storage=self._storage, batch_size=batch_size)


def create_asset_service(
    repo: AssetRecordRepoPort,
    storage: StoragePort,
    clock: ClockPort,
    rules: UploadsRules | None = None,
    *,
    thumbnailer: ThumbnailerPort | None = None,
    derive_queue: DeriveQueuePort | None = None,
    authorize: AuthorizationPolicy = owner_only,
) -> AssetService:
    """
    Factory function to create an asset service.

    Args:
        repo: Asset record repository.
        storage: Byte store.
        clock: Clock for names and timestamps.
        rules: Optional upload rules; defaults apply when omitted.
        thumbnailer: Optional thumbnail generator.
        derive_queue: Optional background queue; thumbnails run inline without it.
        authorize: Delete authorization predicate.

    Returns:
        Configured AssetService.
    """
    uploads = rules or UploadsRules()
    return AssetService(
        repo,
        storage,
        clock,
        thumbnailer=thumbnailer,
        derive_queue=derive_queue,
        constraints=constraints_from_rules(uploads),
        max_files_per_batch=uploads.max_files_per_batch,
        authorize=authorize,
    )
