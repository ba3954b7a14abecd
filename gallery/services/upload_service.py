"""
Upload pipeline: validate an incoming image, build its derivatives and
store every buffer durably, returning the public URLs.
"""
import logging
import mimetypes
import os
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from gallery.config import settings
from gallery.errors import ImageProcessingError, StorageError, ValidationError
from gallery.schemas import UploadResult
from gallery.services.storage_service import (
    ORIGINAL_PREFIX,
    THUMBNAIL_PREFIX,
    WEBP_PREFIX,
    CloudinaryStorage,
)
from gallery.utils import image_processing

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")

DEFAULT_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


@dataclass
class IncomingFile:
    """Raw uploaded file as received from the client."""

    buffer: bytes
    mimetype: str
    size: int
    original_name: str


def derive_extension(original_name: str, mimetype: str) -> str:
    ext = os.path.splitext(original_name or "")[1].lower()
    if ext:
        return ext
    return DEFAULT_EXTENSIONS.get(mimetype) or mimetypes.guess_extension(mimetype) or ""


class UploadService:
    """
    Turns a raw uploaded image into stored derivatives.

    Derivatives are uploaded one after another (original, thumbnail, WebP set)
    so a later step never races an earlier one.
    """

    def __init__(
        self,
        storage: CloudinaryStorage,
        *,
        max_file_size: int = settings.MAX_UPLOAD_SIZE_BYTES,
        enable_webp: bool = settings.ENABLE_WEBP_DERIVATIVES,
    ) -> None:
        self.storage = storage
        self.max_file_size = max_file_size
        self.enable_webp = enable_webp

    def validate(self, file: IncomingFile) -> None:
        """
        Check type and size before any processing or network work.

        Raises:
            ValidationError: Naming the offending field
        """
        if file.mimetype not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                "Invalid file type. Allowed types: JPEG, PNG, WebP, GIF",
                details={"fields": ["mimetype"], "mimetype": file.mimetype},
            )
        if file.size > self.max_file_size:
            raise ValidationError(
                f"File too large. Maximum size is {self.max_file_size / 1024 / 1024:g}MB",
                details={"fields": ["size"], "size": file.size, "maxSize": self.max_file_size},
            )

    async def upload_file(self, file: IncomingFile) -> UploadResult:
        """
        Validate, derive and store one image.

        Metadata read failures degrade to 0x0; WebP failures degrade to
        webp_urls=None. Thumbnail and storage failures are fatal.

        Raises:
            ValidationError: Unsupported type or file too large
            ImageProcessingError: Thumbnail could not be generated
            StorageError: Original or thumbnail could not be stored
        """
        self.validate(file)

        file_id = uuid.uuid4().hex
        extension = derive_extension(file.original_name, file.mimetype)
        metadata = image_processing.get_image_metadata(file.buffer)

        logger.info(
            f"Processing upload {file.original_name} as {file_id} "
            f"({file.size:,} bytes, {metadata.width}x{metadata.height})"
        )

        optimized = image_processing.optimize_original(file.buffer)
        # Built before any upload so a bad image leaves nothing in storage
        thumbnail = image_processing.generate_thumbnail(file.buffer)

        original_url = await self.storage.upload_to_store(
            optimized,
            f"{ORIGINAL_PREFIX}{file_id}{extension}",
            file.mimetype,
        )
        thumbnail_url = await self.storage.upload_to_store(
            thumbnail,
            f"{THUMBNAIL_PREFIX}{file_id}_thumbnail.jpg",
            "image/jpeg",
        )

        webp_urls = await self._upload_webp_set(file_id, optimized) if self.enable_webp else None

        return UploadResult(
            file_id=file_id,
            filename=file.original_name,
            original_url=original_url,
            thumbnail_url=thumbnail_url,
            width=metadata.width,
            height=metadata.height,
            webp_urls=webp_urls,
        )

    async def _upload_webp_set(self, file_id: str, data: bytes) -> Optional[Dict[str, str]]:
        try:
            derivatives = image_processing.generate_webp_set(data)
            urls: Dict[str, str] = {}
            for label, buffer in derivatives.items():
                name = file_id if label == "original" else f"{file_id}_{label}"
                urls[label] = await self.storage.upload_to_store(
                    buffer,
                    f"{WEBP_PREFIX}{name}.webp",
                    "image/webp",
                )
            return urls
        except (ImageProcessingError, StorageError) as e:
            logger.warning(f"WebP derivatives skipped for {file_id}: {e.message}")
            return None
