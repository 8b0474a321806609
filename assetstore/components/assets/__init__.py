"""
Assets component - Upload, retrieval, listing and deletion of stored files.
"""

from .component import (
    DEFAULT_CONSTRAINTS,
    DEFAULT_MAX_FILES_PER_BATCH,
    MAX_PAGE_SIZE,
    AssetService,
    constraints_from_rules,
    create_asset_service,
    generate_storage_name,
    is_image_mime,
    payload_size,
    source_dimensions,
    run_delete,
    run_download,
    run_find_inconsistencies,
    run_get_info,
    run_list,
    run_upload,
    run_upload_batch,
    run_verify,
    safe_extension,
    validate_filename,
    validate_mime_type,
    validate_size,
    validate_upload,
)
from .models import (
    AssetAccessDeniedError,
    AssetError,
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

__all__ = [
    # Entry points
    "run_delete",
    "run_download",
    "run_find_inconsistencies",
    "run_get_info",
    "run_list",
    "run_upload",
    "run_upload_batch",
    "run_verify",
    # Helper functions
    "constraints_from_rules",
    "generate_storage_name",
    "is_image_mime",
    "payload_size",
    "source_dimensions",
    "safe_extension",
    "validate_filename",
    "validate_mime_type",
    "validate_size",
    "validate_upload",
    # Service
    "AssetService",
    "create_asset_service",
    # Constants
    "DEFAULT_CONSTRAINTS",
    "DEFAULT_MAX_FILES_PER_BATCH",
    "MAX_PAGE_SIZE",
    # Errors
    "AssetAccessDeniedError",
    "AssetError",
    "AssetNotFoundError",
    "StorageInconsistencyError",
    # Models
    "AssetListOutput",
    "AssetValidationError",
    "BatchUploadOutput",
    "DeleteOutput",
    "DownloadOutput",
    "ListOwnerAssetsInput",
    "UploadAssetInput",
    "UploadBatchInput",
    "UploadConstraints",
    "UploadFileInput",
    "UploadOutput",
    "VerifyOutput",
    # Ports
    "AssetRecordRepoPort",
    "AuthorizationPolicy",
    "ClockPort",
    "DeriveQueuePort",
    "StoragePort",
    "ThumbnailerPort",
    "owner_only",
]
