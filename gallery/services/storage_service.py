"""
Cloudinary object storage client.
Uploads derivative buffers with retry on transient server errors and
deletes every stored object belonging to one uploaded file.
"""
import asyncio
import logging
import posixpath
import time
from typing import List, Optional, Tuple

import cloudinary
import cloudinary.api
import cloudinary.uploader
import cloudinary.utils
import httpx
from cloudinary.exceptions import Error as CloudinaryError

from gallery.config import Settings, settings
from gallery.errors import StorageError, StorageNotReadyError, StorageRetryExhaustedError
from gallery.utils.file_ids import is_file_id

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.cloudinary.com/v1_1"

# Object namespaces; every derivative of one upload lives under one of these
ORIGINAL_PREFIX = "photos/original/"
THUMBNAIL_PREFIX = "photos/thumbnails/"
WEBP_PREFIX = "photos/webp/"
NAMESPACES = (ORIGINAL_PREFIX, THUMBNAIL_PREFIX, WEBP_PREFIX)

TRANSIENT_STATUS_CODES = frozenset({500, 502, 503, 504})
LIST_PAGE_SIZE = 100


def split_object_path(path: str) -> Tuple[str, Optional[str]]:
    """
    Split an object path into Cloudinary public_id and delivery format.

    "photos/original/abc.jpg" -> ("photos/original/abc", "jpg")
    """
    root, ext = posixpath.splitext(path)
    if not ext:
        return path, None
    return root, ext[1:].lower()


class CloudinaryStorage:
    """
    Storage client bound to one Cloudinary account.

    The HTTP session is created lazily on first use. Initialisation is guarded
    by a lock so concurrent requests share one session; reset() drops it and
    the next call re-initialises.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        *,
        api_base: str = "",
        max_attempts: int = 3,
        retry_base_delay: float = 1.0,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.api_base = (api_base or DEFAULT_API_BASE).rstrip("/")
        self.max_attempts = max(1, max_attempts)
        self.retry_base_delay = retry_base_delay
        self.timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None
        self._lock = asyncio.Lock()
        self._sleep = asyncio.sleep

    @classmethod
    def from_settings(cls, cfg: Settings) -> "CloudinaryStorage":
        return cls(
            cfg.CLOUDINARY_CLOUD_NAME,
            cfg.CLOUDINARY_API_KEY,
            cfg.CLOUDINARY_API_SECRET,
            api_base=cfg.CLOUDINARY_UPLOAD_URL,
            max_attempts=cfg.STORAGE_MAX_ATTEMPTS,
            retry_base_delay=cfg.STORAGE_RETRY_BASE_DELAY,
            timeout=cfg.STORAGE_TIMEOUT_SECONDS,
        )

    @property
    def upload_url(self) -> str:
        return f"{self.api_base}/{self.cloud_name}/image/upload"

    def validate_config(self) -> bool:
        """
        Validate that Cloudinary is properly configured.

        Returns:
            bool: True if all credentials are present
        """
        if not self.cloud_name:
            logger.warning("CLOUDINARY_CLOUD_NAME not configured")
            return False
        if not self.api_key:
            logger.warning("CLOUDINARY_API_KEY not configured")
            return False
        if not self.api_secret:
            logger.warning("CLOUDINARY_API_SECRET not configured")
            return False
        return True

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._http is not None:
            return self._http

        async with self._lock:
            if self._http is None:
                if not self.validate_config():
                    raise StorageNotReadyError()
                cloudinary.config(
                    cloud_name=self.cloud_name,
                    api_key=self.api_key,
                    api_secret=self.api_secret,
                    secure=True,
                )
                self._http = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
                logger.info("Storage client initialized successfully")
        return self._http

    async def reset(self) -> None:
        """Drop the current session; the next call re-initialises it."""
        async with self._lock:
            if self._http is not None:
                await self._http.aclose()
            self._http = None

    async def close(self) -> None:
        await self.reset()
        logger.info("Storage client closed")

    def _signed_upload_params(self, public_id: str, fmt: Optional[str]) -> dict:
        """
        Build a fresh signed upload credential.
        Signatures embed the current timestamp, so one is made per attempt.
        """
        params = {
            "public_id": public_id,
            "timestamp": str(int(time.time())),
            "overwrite": "true",
        }
        if fmt:
            params["format"] = fmt
        params["signature"] = cloudinary.utils.api_sign_request(params, self.api_secret)
        params["api_key"] = self.api_key
        return params

    def get_file_url(self, public_id: str, fmt: Optional[str] = None) -> str:
        """Build the public HTTPS delivery URL for a stored object."""
        url, _ = cloudinary.utils.cloudinary_url(
            public_id,
            format=fmt,
            secure=True,
            cloud_name=self.cloud_name,
        )
        return url

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return response.text[:200]

    async def upload_to_store(self, data: bytes, path: str, content_type: str) -> str:
        """
        Upload a buffer and return its public URL.

        Transient failures (HTTP 500/502/503/504 or a transport error) are
        retried up to max_attempts times, sleeping attempt * retry_base_delay
        seconds between attempts.

        Raises:
            StorageNotReadyError: Credentials are missing
            StorageError: The store rejected the upload (not retried)
            StorageRetryExhaustedError: Every attempt failed transiently
        """
        public_id, fmt = split_object_path(path)
        filename = posixpath.basename(path)
        last_status: Optional[int] = None

        for attempt in range(1, self.max_attempts + 1):
            client = await self._ensure_client()
            params = self._signed_upload_params(public_id, fmt)

            try:
                response = await client.post(
                    self.upload_url,
                    data=params,
                    files={"file": (filename, data, content_type)},
                )
            except httpx.TransportError as e:
                last_status = None
                logger.warning(
                    f"Storage upload transport error for {path} "
                    f"(attempt {attempt}/{self.max_attempts}): {str(e)}"
                )
            else:
                if response.is_success:
                    payload = response.json()
                    url = payload.get("secure_url") or self.get_file_url(public_id, fmt)
                    logger.info(f"Uploaded {path} ({len(data):,} bytes) on attempt {attempt}")
                    return url

                last_status = response.status_code
                message = self._error_message(response)
                if last_status not in TRANSIENT_STATUS_CODES:
                    logger.error(f"Storage rejected upload of {path}: HTTP {last_status} {message}")
                    raise StorageError(
                        f"Storage rejected upload of {path}: {message}",
                        reason="rejected",
                        store_status=last_status,
                        attempts=attempt,
                    )
                logger.warning(
                    f"Storage upload error for {path} "
                    f"(attempt {attempt}/{self.max_attempts}): HTTP {last_status} {message}"
                )

            if attempt < self.max_attempts:
                await self._sleep(attempt * self.retry_base_delay)

        logger.error(f"Storage upload of {path} failed after {self.max_attempts} attempts")
        raise StorageRetryExhaustedError(
            f"Failed to upload {path} after {self.max_attempts} attempts",
            store_status=last_status,
            attempts=self.max_attempts,
        )

    def _list_by_prefix(self, prefix: str) -> List[str]:
        public_ids: List[str] = []
        cursor = None
        while True:
            options = {
                "type": "upload",
                "resource_type": "image",
                "prefix": prefix,
                "max_results": LIST_PAGE_SIZE,
            }
            if cursor:
                options["next_cursor"] = cursor
            result = cloudinary.api.resources(**options)
            public_ids.extend(item["public_id"] for item in result.get("resources", []))
            cursor = result.get("next_cursor")
            if not cursor:
                return public_ids

    def _delete_one(self, public_id: str) -> bool:
        try:
            result = cloudinary.uploader.destroy(public_id, invalidate=True, resource_type="image")
        except Exception as e:
            logger.error(f"Failed to delete file {public_id}: {str(e)}", exc_info=True)
            return False

        if result.get("result") in ("ok", "not found"):
            logger.info(f"Deleted file: {public_id} (result: {result.get('result')})")
            return True
        logger.error(f"Unexpected delete result for {public_id}: {result}")
        return False

    async def delete_by_file_id(self, file_id: str) -> bool:
        """
        Delete every stored derivative of one upload.

        Within each namespace the objects named exactly after the file id, or
        after the file id followed by "_", are deleted independently; one
        failure does not stop the others. Ids not in the upload id format
        are refused.

        Returns:
            bool: True only if every matching object was deleted
        """
        if not is_file_id(file_id):
            logger.error(f"Refusing to delete by malformed file id {file_id!r}")
            return False

        try:
            await self._ensure_client()
            public_ids: List[str] = []
            for namespace in NAMESPACES:
                exact = f"{namespace}{file_id}"
                public_ids.extend(
                    public_id
                    for public_id in self._list_by_prefix(exact)
                    if public_id == exact or public_id.startswith(f"{exact}_")
                )
        except (StorageError, CloudinaryError) as e:
            logger.error(f"Delete file error for {file_id}: {str(e)}")
            return False

        results = [self._delete_one(public_id) for public_id in public_ids]
        logger.info(f"Deleted {sum(results)}/{len(results)} stored objects for {file_id}")
        return all(results)


storage = CloudinaryStorage.from_settings(settings)


def get_storage() -> CloudinaryStorage:
    """FastAPI dependency returning the process-wide storage client."""
    return storage
