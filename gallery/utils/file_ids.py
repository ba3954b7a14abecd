"""
Recover the upload file id from a stored object URL.
"""
import posixpath
import re
from typing import Optional
from urllib.parse import urlparse

# Upload ids are uuid4().hex
FILE_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")

DELIVERY_HOST = "res.cloudinary.com"

# Version segment Cloudinary inserts after /upload/, e.g. /v1712345678/
_VERSION_SEGMENT = re.compile(r"^v\d+$")


def is_file_id(value: Optional[str]) -> bool:
    return bool(value) and FILE_ID_PATTERN.match(value) is not None


def extract_file_id(url: Optional[str], cloud_name: Optional[str] = None) -> Optional[str]:
    """
    Extract the file id shared by every derivative of one upload.

    The id is the object name up to the first "_" or ".":
        https://res.cloudinary.com/demo/image/upload/v1/photos/original/<id>.jpg -> "<id>"
        https://res.cloudinary.com/demo/image/upload/photos/thumbnails/<id>_thumbnail.jpg -> "<id>"

    Only names in the upload id format are returned. When cloud_name is given
    the URL must also be served from that cloud's delivery host.

    Returns:
        The file id, or None when the URL does not point at an uploaded file
    """
    if not url:
        return None

    parsed = urlparse(url)
    if cloud_name is not None:
        if parsed.hostname != DELIVERY_HOST or not parsed.path.startswith(f"/{cloud_name}/"):
            return None

    name = posixpath.basename(parsed.path.rstrip("/"))
    if not name or _VERSION_SEGMENT.match(name):
        return None

    file_id = re.split(r"[_.]", name, maxsplit=1)[0]
    return file_id if is_file_id(file_id) else None
