"""
Photo routes: records, multipart upload, slider flags and storage purge.
Reads are public; writes require an admin token.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from gallery.database import get_db
from gallery.schemas import (
    PhotoCreate,
    PhotoResponse,
    PhotosOrderUpdate,
    PhotoUpdate,
    PurgeResult,
    SliderStatusUpdate,
)
from gallery.services.photo_service import PhotoService
from gallery.services.storage_service import CloudinaryStorage, get_storage
from gallery.services.upload_service import IncomingFile
from gallery.utils.jwt_auth import require_admin
from gallery.utils.rate_limit import RATE_LIMITS, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/photos", tags=["Photos"])


def get_photo_service(
    db: AsyncSession = Depends(get_db),
    storage: CloudinaryStorage = Depends(get_storage),
) -> PhotoService:
    return PhotoService(db, storage)


@router.get("", response_model=List[PhotoResponse])
async def list_photos(service: PhotoService = Depends(get_photo_service)):
    return await service.find_all()


@router.post("", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
async def create_photo(
    data: PhotoCreate,
    service: PhotoService = Depends(get_photo_service),
    admin: dict = Depends(require_admin),
):
    """Record a photo whose files are already in storage."""
    return await service.create(data)


@router.post("/upload", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["upload"])
async def upload_photo(
    request: Request,
    file: UploadFile = File(..., description="Image file (JPEG, PNG, WebP or GIF)"),
    album_id: str = Form(..., alias="albumId"),
    display_order: Optional[int] = Form(None, alias="displayOrder"),
    is_slider_image: bool = Form(False, alias="isSliderImage"),
    service: PhotoService = Depends(get_photo_service),
    admin: dict = Depends(require_admin),
):
    """
    Upload an image into an album.

    Stores the optimized original, a thumbnail and WebP derivatives, then
    records the photo.

    Args:
        file: Multipart image file
        album_id: Album the photo belongs to
        display_order: Position in the album (defaults to the end)
        is_slider_image: Feature the photo in the homepage carousel

    Returns:
        PhotoResponse: The created photo

    Raises:
        ValidationError: 400 if the file type or size is not accepted
        NotFoundError: 404 if the album does not exist
        StorageError: 500 if storage failed
    """
    buffer = await file.read()
    incoming = IncomingFile(
        buffer=buffer,
        mimetype=file.content_type or "",
        size=len(buffer),
        original_name=file.filename or "upload",
    )
    return await service.upload(
        incoming,
        album_id,
        display_order=display_order,
        is_slider_image=is_slider_image,
    )


@router.get("/slider", response_model=List[PhotoResponse])
async def list_slider_photos(service: PhotoService = Depends(get_photo_service)):
    return await service.find_slider_photos()


@router.get("/album/{album_id}", response_model=List[PhotoResponse])
async def list_album_photos(album_id: str, service: PhotoService = Depends(get_photo_service)):
    return await service.find_by_album(album_id)


@router.patch("/order/update", response_model=List[PhotoResponse])
async def update_photo_order(
    data: PhotosOrderUpdate,
    service: PhotoService = Depends(get_photo_service),
    admin: dict = Depends(require_admin),
):
    return await service.update_order(data)


@router.post("/storage/purge", response_model=PurgeResult)
async def purge_storage(
    service: PhotoService = Depends(get_photo_service),
    admin: dict = Depends(require_admin),
):
    """Retry storage cleanup for files left behind by earlier deletes."""
    return await service.purge_pending_deletions()


@router.get("/{photo_id}", response_model=PhotoResponse)
async def get_photo(photo_id: str, service: PhotoService = Depends(get_photo_service)):
    return await service.find_one(photo_id)


@router.patch("/{photo_id}", response_model=PhotoResponse)
async def update_photo(
    photo_id: str,
    data: PhotoUpdate,
    service: PhotoService = Depends(get_photo_service),
    admin: dict = Depends(require_admin),
):
    return await service.update(photo_id, data)


@router.patch("/{photo_id}/slider", response_model=PhotoResponse)
async def set_slider_status(
    photo_id: str,
    data: SliderStatusUpdate,
    service: PhotoService = Depends(get_photo_service),
    admin: dict = Depends(require_admin),
):
    return await service.toggle_slider_status(photo_id, data.is_slider_image)


@router.delete("/{photo_id}", response_model=PhotoResponse)
@limiter.limit(RATE_LIMITS["delete"])
async def delete_photo(
    request: Request,
    photo_id: str,
    service: PhotoService = Depends(get_photo_service),
    admin: dict = Depends(require_admin),
):
    """
    Delete a photo and its stored files.
    A failed storage cleanup is queued and does not fail the request.
    """
    return await service.remove(photo_id)
