"""
Public File Serving Routes.

Serves stored files and their thumbnails at the URLs carried on each record.
Storage names are never reused, so responses are cached as immutable.

Headers:
- ETag: Based on the stored SHA-256 (primary files only)
- Cache-Control: Immutable, long max-age
- Content-Disposition: inline
- X-Content-SHA256: SHA-256 of the primary file
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response, StreamingResponse

from assetstore.api.deps import get_asset_service, get_context, get_storage
from assetstore.api.routes.assets import GENERIC_STORAGE_ERROR, iter_stream
from assetstore.app_shell.context import ServiceContext
from assetstore.components.assets import (
    AssetNotFoundError,
    AssetService,
    StorageInconsistencyError,
)
from assetstore.core.ports.storage import KeyNotFoundError, StoragePort

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Constants ---

# Cache for 1 year (immutable content)
CACHE_MAX_AGE = 31536000
CACHE_CONTROL_IMMUTABLE = f"public, max-age={CACHE_MAX_AGE}, immutable"


# --- Helper Functions ---


def build_etag(sha256: str) -> str:
    """ETag from the first 16 hex chars of the content hash."""
    return f'"{sha256[:16]}"'


def build_inline_disposition(filename: str) -> str:
    safe_filename = filename.replace('"', '\\"').replace("\r", "_").replace("\n", "_")
    return f'inline; filename="{safe_filename}"'


def check_if_none_match(request: Request, etag: str) -> bool:
    """
    Check If-None-Match header for conditional GET.

    Returns True if client has cached version (304 should be returned).
    """
    if_none_match = request.headers.get("if-none-match")
    if if_none_match:
        client_etags = [e.strip() for e in if_none_match.split(",")]
        return etag in client_etags or "*" in client_etags
    return False


# --- Endpoints ---


@router.get(
    "/uploads/{storage_name}",
    summary="Get stored file",
    responses={
        200: {"description": "File content"},
        304: {"description": "Not modified (client has cached version)"},
        404: {"description": "File not found"},
    },
)
def get_upload(
    request: Request,
    storage_name: str,
    service: AssetService = Depends(get_asset_service),
) -> Response:
    try:
        record = service.get_info(storage_name)
    except AssetNotFoundError as e:
        raise HTTPException(status_code=404, detail="File not found") from e

    etag = build_etag(record.checksum)
    if check_if_none_match(request, etag):
        return Response(
            status_code=304,
            headers={"ETag": etag, "Cache-Control": CACHE_CONTROL_IMMUTABLE},
        )

    try:
        result = service.download(storage_name)
    except AssetNotFoundError as e:
        raise HTTPException(status_code=404, detail="File not found") from e
    except StorageInconsistencyError as e:
        raise HTTPException(status_code=500, detail=GENERIC_STORAGE_ERROR) from e

    headers = {
        "ETag": etag,
        "Cache-Control": CACHE_CONTROL_IMMUTABLE,
        "Content-Disposition": build_inline_disposition(record.original_name),
        "X-Content-SHA256": record.checksum,
        "Content-Length": str(record.size_bytes),
    }
    return StreamingResponse(iter_stream(result.stream), media_type=record.mime_type, headers=headers)


@router.get(
    "/thumbnails/{thumbnail_name}",
    summary="Get thumbnail",
    responses={
        200: {"description": "JPEG thumbnail"},
        404: {"description": "No thumbnail with this name"},
    },
)
def get_thumbnail(
    thumbnail_name: str,
    ctx: ServiceContext = Depends(get_context),
    storage: StoragePort = Depends(get_storage),
) -> Response:
    thumbnailer = ctx.thumbnailer
    storage_name = thumbnailer.storage_name_for(thumbnail_name) if thumbnailer else None
    if storage_name is None:
        raise HTTPException(status_code=404, detail="Thumbnail not found")

    record = ctx.asset_repo.find_by_storage_name(storage_name)
    if record is None or not record.derived_location:
        raise HTTPException(status_code=404, detail="Thumbnail not found")

    try:
        data = storage.get(record.derived_location)
    except KeyNotFoundError as e:
        logger.error(
            "Thumbnail missing for %s (owner=%s, op=thumbnail) at %s",
            storage_name,
            record.owner_id,
            record.derived_location,
        )
        raise HTTPException(status_code=404, detail="Thumbnail not found") from e

    return Response(
        content=data,
        media_type="image/jpeg",
        headers={
            "Cache-Control": CACHE_CONTROL_IMMUTABLE,
            "Content-Length": str(len(data)),
        },
    )
