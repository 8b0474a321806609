"""
Pillow Thumbnail Adapter.

Derives a bounded-size JPEG thumbnail for image assets and stores it
next to the primary asset under "{directory}/{prefix}{storage_name}.jpg".
Images are never enlarged; aspect ratio is preserved.
"""

from __future__ import annotations

import io
import logging

from PIL import Image, ImageOps

from assetstore.core.ports.storage import StorageError, StoragePort
from assetstore.core.ports.thumbnails import DerivedAsset, ThumbnailError

logger = logging.getLogger(__name__)

DECODABLE_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
        "image/bmp",
        "image/tiff",
    }
)


# Pillow reports corrupt PNG chunks as SyntaxError
DECODE_ERRORS = (
    OSError,
    ValueError,
    SyntaxError,
    MemoryError,
    Image.DecompressionBombError,
    StorageError,
)


class PillowThumbnailer:
    def __init__(
        self,
        storage: StoragePort,
        *,
        max_size: tuple[int, int] = (200, 200),
        quality: int = 80,
        prefix: str = "thumb_",
        directory: str = "thumbnails",
    ) -> None:
        self._storage = storage
        self.max_size = max_size
        self.quality = quality
        self.prefix = prefix
        self.directory = directory

    def supports(self, mime_type: str) -> bool:
        return mime_type in DECODABLE_MIME_TYPES

    def derived_key(self, storage_name: str) -> str:
        return f"{self.directory}/{self.prefix}{storage_name}.jpg"

    def storage_name_for(self, thumbnail_name: str) -> str | None:
        """Map a thumbnail file name back to its primary storage name."""
        if not thumbnail_name.startswith(self.prefix) or not thumbnail_name.endswith(".jpg"):
            return None
        return thumbnail_name[len(self.prefix) : -len(".jpg")] or None

    def derive(self, storage_name: str, mime_type: str) -> DerivedAsset | None:
        if not self.supports(mime_type):
            return None

        try:
            width, height, payload = self._render(storage_name)
        except DECODE_ERRORS as e:
            raise ThumbnailError(storage_name, str(e)) from e

        key = self.derived_key(storage_name)
        try:
            self._storage.put(key, payload)
        except StorageError as e:
            raise ThumbnailError(storage_name, str(e)) from e

        logger.debug("Thumbnail stored for %s at %s (%dx%d)", storage_name, key, width, height)
        return DerivedAsset(location=key, width=width, height=height)

    def read_dimensions(self, storage_name: str, mime_type: str) -> tuple[int, int] | None:
        """Source size from the image header, without decoding pixels."""
        if not self.supports(mime_type):
            return None

        try:
            with self._storage.open(storage_name) as fh, Image.open(fh) as img:
                return img.size
        except DECODE_ERRORS as e:
            logger.warning("Could not read dimensions of %s: %s", storage_name, e)
            return None

    def discard(self, location: str) -> bool:
        return self._storage.delete(location)

    def _render(self, storage_name: str) -> tuple[int, int, bytes]:
        with self._storage.open(storage_name) as fh, Image.open(fh) as img:
            width, height = img.size
            thumb = ImageOps.exif_transpose(img)
            thumb.thumbnail(self.max_size, Image.Resampling.LANCZOS)
            if thumb.mode not in ("RGB", "L"):
                thumb = thumb.convert("RGB")

            out = io.BytesIO()
            thumb.save(out, format="JPEG", quality=self.quality)
            return width, height, out.getvalue()
