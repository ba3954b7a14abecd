"""
Image derivative generation with Pillow.
Produces the optimized original, the standard thumbnail and the WebP set
for an uploaded image. All resizing fits inside a bounding box and never enlarges.
"""
import io
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from PIL import ExifTags, Image, ImageOps, UnidentifiedImageError

from gallery.errors import ImageProcessingError

logger = logging.getLogger(__name__)

# Bounding boxes (width, height) for thumbnail presets
THUMBNAIL_SIZES: Dict[str, Tuple[int, int]] = {
    "small": (320, 320),
    "medium": (640, 640),
    "large": (1280, 1280),
}
STANDARD_THUMBNAIL = "medium"

JPEG_ORIGINAL_QUALITY = 85
JPEG_THUMBNAIL_QUALITY = 80
PNG_COMPRESS_LEVEL = 9     # Maximum zlib effort, still lossless
WEBP_ORIGINAL_QUALITY = 80
WEBP_THUMBNAIL_QUALITY = 75
WEBP_METHOD = 6            # Compression method (0-6, higher = better compression but slower)

# EXIF orientations that swap width and height
TRANSPOSED_ORIENTATIONS = (5, 6, 7, 8)

# Pillow refuses oversized images with DecompressionBombError, which is not an OSError
DECODE_ERRORS = (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError)


@dataclass(frozen=True)
class ImageMetadata:
    width: int
    height: int
    format: Optional[str] = None


def _open(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def get_image_metadata(data: bytes) -> ImageMetadata:
    """
    Read dimensions and format of an image.

    Dimensions are reported after EXIF orientation, matching the stored
    derivatives. Decoding failures are not fatal: the result is (0, 0) and
    the error is logged.
    """
    try:
        image = Image.open(io.BytesIO(data))
        width, height = image.size
        if image.getexif().get(ExifTags.Base.Orientation) in TRANSPOSED_ORIENTATIONS:
            width, height = height, width
        return ImageMetadata(width=width, height=height, format=image.format)
    except DECODE_ERRORS as e:
        logger.error(f"Image metadata error: {str(e)}")
        return ImageMetadata(width=0, height=0)


def fit_inside(size: Tuple[int, int], box: Tuple[int, int]) -> Tuple[int, int]:
    """
    Scale (width, height) to fit inside box preserving aspect ratio.
    Sizes already inside the box are returned unchanged.
    """
    width, height = size
    max_width, max_height = box
    if width <= max_width and height <= max_height:
        return width, height

    scale = min(max_width / width, max_height / height)
    return max(1, round(width * scale)), max(1, round(height * scale))


def _resize_inside(image: Image.Image, box: Tuple[int, int]) -> Image.Image:
    target = fit_inside(image.size, box)
    if target == image.size:
        return image
    return image.resize(target, Image.Resampling.LANCZOS)


def _to_rgb(image: Image.Image) -> Image.Image:
    """Flatten transparency onto white for formats without alpha (JPEG)."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def _for_webp(image: Image.Image) -> Image.Image:
    # WebP supports transparency, so preserve alpha channel
    if image.mode in ("RGBA", "RGB"):
        return image
    if image.mode in ("LA", "P"):
        return image.convert("RGBA")
    return image.convert("RGB")


def _prepare(data: bytes) -> Image.Image:
    """Decode and apply EXIF orientation so bounding boxes match what viewers see."""
    image = _open(data)
    return ImageOps.exif_transpose(image)


def optimize_original(data: bytes) -> bytes:
    """
    Re-encode the original for delivery.

    JPEG: progressive, quality 85, optimized Huffman tables.
    PNG: maximum lossless compression effort.
    Other formats, and anything that fails to decode, are returned unchanged.
    """
    try:
        image = _open(data)
        source_format = image.format
        # Re-encoding drops EXIF, so bake the orientation into the pixels
        image = ImageOps.exif_transpose(image)
        buffer = io.BytesIO()

        if source_format == "JPEG":
            image = _to_rgb(image)
            image.save(
                buffer,
                format="JPEG",
                quality=JPEG_ORIGINAL_QUALITY,
                progressive=True,
                optimize=True,
            )
        elif source_format == "PNG":
            image.save(buffer, format="PNG", optimize=True, compress_level=PNG_COMPRESS_LEVEL)
        else:
            return data

        optimized = buffer.getvalue()
        logger.info(
            f"Optimized {source_format} original: "
            f"{len(data):,} bytes → {len(optimized):,} bytes"
        )
        return optimized

    except DECODE_ERRORS as e:
        logger.warning(f"Could not optimize original, keeping uploaded bytes: {str(e)}")
        return data


def generate_thumbnail(data: bytes) -> bytes:
    """
    Build the standard thumbnail: fit inside 640x640, progressive JPEG at quality 80.

    Raises:
        ImageProcessingError: The thumbnail is mandatory, so any failure is fatal
    """
    try:
        image = _prepare(data)
        image = _resize_inside(image, THUMBNAIL_SIZES[STANDARD_THUMBNAIL])
        buffer = io.BytesIO()
        _to_rgb(image).save(
            buffer,
            format="JPEG",
            quality=JPEG_THUMBNAIL_QUALITY,
            progressive=True,
            optimize=True,
        )
        return buffer.getvalue()
    except DECODE_ERRORS as e:
        logger.error(f"Thumbnail generation error: {str(e)}")
        raise ImageProcessingError("Failed to generate thumbnail") from e


def generate_webp_set(data: bytes) -> Dict[str, bytes]:
    """
    Build WebP derivatives.

    Returns:
        dict: "original" (full size, quality 80) plus one entry per
        thumbnail preset (quality 75)

    Raises:
        ImageProcessingError: If any derivative cannot be encoded
    """
    try:
        image = _for_webp(_prepare(data))
        derivatives: Dict[str, bytes] = {}

        buffer = io.BytesIO()
        image.save(buffer, format="WEBP", quality=WEBP_ORIGINAL_QUALITY, method=WEBP_METHOD)
        derivatives["original"] = buffer.getvalue()

        for label, box in THUMBNAIL_SIZES.items():
            buffer = io.BytesIO()
            _resize_inside(image, box).save(
                buffer,
                format="WEBP",
                quality=WEBP_THUMBNAIL_QUALITY,
                method=WEBP_METHOD,
            )
            derivatives[label] = buffer.getvalue()

        return derivatives
    except DECODE_ERRORS + (KeyError,) as e:
        logger.error(f"WebP generation error: {str(e)}")
        raise ImageProcessingError("Failed to generate WebP derivatives") from e


def generate_multiple_thumbnails(data: bytes) -> Dict[str, bytes]:
    """
    Resize to every thumbnail preset, keeping the source format.

    Raises:
        ImageProcessingError: If decoding or encoding fails
    """
    try:
        image = _prepare(data)
        source_format = _open(data).format or "PNG"
        thumbnails: Dict[str, bytes] = {}
        for label, box in THUMBNAIL_SIZES.items():
            resized = _resize_inside(image, box)
            if source_format == "JPEG":
                resized = _to_rgb(resized)
            buffer = io.BytesIO()
            resized.save(buffer, format=source_format)
            thumbnails[label] = buffer.getvalue()
        return thumbnails
    except DECODE_ERRORS + (KeyError,) as e:
        logger.error(f"Multiple thumbnails generation error: {str(e)}")
        raise ImageProcessingError("Failed to generate thumbnails") from e
