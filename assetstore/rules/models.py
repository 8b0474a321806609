from typing import Literal

from pydantic import BaseModel, Field

MIB = 1024 * 1024

DEFAULT_ALLOWED_MIME_TYPES = [
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "application/pdf",
    "application/zip",
    "application/x-zip-compressed",
    "text/csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
]


class UploadsRules(BaseModel):
    max_upload_bytes: int = Field(default=100 * MIB, gt=0)
    allowlist_mime_types: list[str] = Field(
        default_factory=lambda: DEFAULT_ALLOWED_MIME_TYPES.copy()
    )
    max_files_per_batch: int = Field(default=10, gt=0)
    max_filename_length: int = Field(default=255, gt=0)

class ThumbnailRules(BaseModel):
    enabled: bool = True
    max_width: int = Field(default=200, gt=0)
    max_height: int = Field(default=200, gt=0)
    quality: int = Field(default=80, ge=1, le=95)
    prefix: str = "thumb_"
    directory: str = "thumbnails"
    mode: Literal["inline", "background"] = "inline"
    workers: int = Field(default=2, gt=0)
    queue_size: int = Field(default=64, gt=0)

class RetentionRules(BaseModel):
    max_age_days: int = Field(default=30, gt=0)
    sweep_interval_seconds: int = Field(default=86400, gt=0)
    batch_size: int = Field(default=500, gt=0)
    run_in_process: bool = False

class RateLimitWindow(BaseModel):
    window_seconds: int = Field(gt=0)
    max_requests: int

class RateLimitRules(BaseModel):
    upload: RateLimitWindow = RateLimitWindow(window_seconds=60, max_requests=30)

class Rules(BaseModel):
    uploads: UploadsRules = Field(default_factory=UploadsRules)
    thumbnails: ThumbnailRules = Field(default_factory=ThumbnailRules)
    retention: RetentionRules = Field(default_factory=RetentionRules)
    rate_limits: RateLimitRules = Field(default_factory=RateLimitRules)
