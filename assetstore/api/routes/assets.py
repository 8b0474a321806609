"""
Assets API routes.

Owner-facing endpoints for upload, listing, metadata, download and delete.
The caller's identity comes from get_current_owner.
"""

from collections.abc import Iterator
from typing import BinaryIO
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse

from assetstore.api.deps import (
    get_asset_service,
    get_current_owner,
    get_public_base_url,
    get_rate_limiter,
)
from assetstore.api.schemas import (
    AssetListResponse,
    AssetResponse,
    DeleteResponse,
    UploadBatchResponse,
    UploadResultItem,
)
from assetstore.app_shell.rate_limit import RateLimiter
from assetstore.components.assets import (
    AssetAccessDeniedError,
    AssetNotFoundError,
    AssetService,
    StorageInconsistencyError,
    UploadFileInput,
    UploadOutput,
)
from assetstore.core.ports.db import RepositoryError

router = APIRouter()

STREAM_CHUNK_SIZE = 64 * 1024
GENERIC_STORAGE_ERROR = "The file could not be retrieved"

# Per-file codes that are the client's fault
CLIENT_ERROR_CODES = {"file_too_large", "unsupported_type", "invalid_filename"}


# --- Helper Functions ---


def build_attachment_disposition(filename: str) -> str:
    """
    Content-Disposition for downloads.

    Carries an ASCII fallback plus an RFC 5987 filename* for non-ASCII names.
    """
    fallback = filename.encode("ascii", "replace").decode("ascii")
    fallback = fallback.replace("\\", "_").replace('"', "_").replace("\r", "_").replace("\n", "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def iter_stream(stream: BinaryIO, chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
    try:
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        stream.close()


def to_result_item(result: UploadOutput, base_url: str) -> UploadResultItem:
    if result.success and result.record is not None:
        return UploadResultItem(
            filename=result.filename,
            success=True,
            file=AssetResponse.from_record(result.record, base_url),
            thumbnail_pending=result.thumbnail_pending,
        )
    err = result.errors[0] if result.errors else None
    return UploadResultItem(
        filename=result.filename,
        success=False,
        error=err.message if err else "Upload failed",
        code=err.code if err else None,
    )


def _to_input(file: UploadFile) -> UploadFileInput:
    return UploadFileInput(
        data=file.file,
        filename=file.filename or "",
        content_type=file.content_type or "application/octet-stream",
    )


def _check_rate_limit(limiter: RateLimiter, owner_id: str) -> None:
    if not limiter.check_upload(owner_id):
        raise HTTPException(status_code=429, detail="Too many uploads, try again later")


# --- Endpoints ---


@router.post("", response_model=AssetResponse, status_code=201)
def upload_file(
    file: UploadFile = File(...),
    generate_thumbnail: bool = Form(True),
    owner_id: str = Depends(get_current_owner),
    service: AssetService = Depends(get_asset_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
    base_url: str = Depends(get_public_base_url),
) -> AssetResponse:
    """Upload a single file."""
    _check_rate_limit(limiter, owner_id)

    result = service.upload(_to_input(file), owner_id, generate_thumbnail=generate_thumbnail)
    if not result.success or result.record is None:
        err = result.errors[0]
        if err.code == "file_too_large":
            raise HTTPException(status_code=413, detail=err.message)
        if err.code in CLIENT_ERROR_CODES:
            raise HTTPException(status_code=400, detail=err.message)
        raise HTTPException(status_code=500, detail="The file could not be stored")

    return AssetResponse.from_record(result.record, base_url)


@router.post("/batch", response_model=UploadBatchResponse)
def upload_files(
    files: list[UploadFile] = File(...),
    generate_thumbnail: bool = Form(True),
    owner_id: str = Depends(get_current_owner),
    service: AssetService = Depends(get_asset_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
    base_url: str = Depends(get_public_base_url),
) -> UploadBatchResponse:
    """Upload several files; each one succeeds or fails on its own."""
    _check_rate_limit(limiter, owner_id)

    result = service.upload_batch(
        [_to_input(f) for f in files], owner_id, generate_thumbnail=generate_thumbnail
    )
    if not result.success:
        raise HTTPException(status_code=400, detail=result.errors[0].message)

    return UploadBatchResponse(
        results=[to_result_item(r, base_url) for r in result.results],
        succeeded=result.succeeded,
        failed=result.failed,
    )


@router.get("", response_model=AssetListResponse)
def list_files(
    page: int = Query(1),
    limit: int = Query(20),
    owner_id: str = Depends(get_current_owner),
    service: AssetService = Depends(get_asset_service),
    base_url: str = Depends(get_public_base_url),
) -> AssetListResponse:
    """List the caller's files, newest first."""
    result = service.list_owner_assets(owner_id, page=page, limit=limit)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.errors[0].message)

    return AssetListResponse(
        items=[AssetResponse.from_record(r, base_url) for r in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.get("/{storage_name}", response_model=AssetResponse)
def get_file_info(
    storage_name: str,
    owner_id: str = Depends(get_current_owner),
    service: AssetService = Depends(get_asset_service),
    base_url: str = Depends(get_public_base_url),
) -> AssetResponse:
    """Metadata for one file."""
    try:
        record = service.get_info(storage_name)
    except AssetNotFoundError as e:
        raise HTTPException(status_code=404, detail="File not found") from e

    return AssetResponse.from_record(record, base_url)


@router.get("/{storage_name}/download")
def download_file(
    storage_name: str,
    owner_id: str = Depends(get_current_owner),
    service: AssetService = Depends(get_asset_service),
) -> StreamingResponse:
    """Stream the stored bytes as an attachment."""
    try:
        result = service.download(storage_name)
    except AssetNotFoundError as e:
        raise HTTPException(status_code=404, detail="File not found") from e
    except StorageInconsistencyError as e:
        raise HTTPException(status_code=500, detail=GENERIC_STORAGE_ERROR) from e

    record = result.record
    headers = {
        "Content-Disposition": build_attachment_disposition(record.original_name),
        "Content-Length": str(record.size_bytes),
        "X-Content-SHA256": record.checksum,
    }
    return StreamingResponse(
        iter_stream(result.stream),
        media_type=record.mime_type,
        headers=headers,
    )


@router.delete("/{storage_name}", response_model=DeleteResponse)
def delete_file(
    storage_name: str,
    owner_id: str = Depends(get_current_owner),
    service: AssetService = Depends(get_asset_service),
) -> DeleteResponse:
    """Delete one of the caller's files."""
    try:
        service.delete(storage_name, owner_id)
    except AssetNotFoundError as e:
        raise HTTPException(status_code=404, detail="File not found") from e
    except AssetAccessDeniedError as e:
        raise HTTPException(status_code=403, detail="You may not delete this file") from e
    except RepositoryError as e:
        raise HTTPException(status_code=500, detail="The file could not be deleted") from e

    return DeleteResponse(success=True, message=f"File {storage_name} deleted")
