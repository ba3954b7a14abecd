"""
Album routes.
Reads are public; writes require an admin token.
"""
from typing import List

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from gallery.database import get_db
from gallery.schemas import (
    AlbumCoverUpdate,
    AlbumCreate,
    AlbumResponse,
    AlbumsOrderUpdate,
    AlbumUpdate,
)
from gallery.services.album_service import AlbumService
from gallery.utils.jwt_auth import require_admin
from gallery.utils.rate_limit import RATE_LIMITS, limiter

router = APIRouter(prefix="/albums", tags=["Albums"])


def get_album_service(db: AsyncSession = Depends(get_db)) -> AlbumService:
    return AlbumService(db)


@router.get("", response_model=List[AlbumResponse])
async def list_albums(
    include_hidden: bool = Query(True, alias="includeHidden"),
    service: AlbumService = Depends(get_album_service),
):
    return await service.find_all(include_hidden=include_hidden)


@router.post("", response_model=AlbumResponse, status_code=status.HTTP_201_CREATED)
async def create_album(
    data: AlbumCreate,
    service: AlbumService = Depends(get_album_service),
    admin: dict = Depends(require_admin),
):
    """
    Create an album.

    Raises:
        NotFoundError: 404 if the category does not exist
        DuplicateError: 400 if the slug is taken
    """
    return await service.create(data)


@router.get("/slug/{slug}", response_model=AlbumResponse)
async def get_album_by_slug(slug: str, service: AlbumService = Depends(get_album_service)):
    return await service.find_by_slug(slug)


@router.get("/category/{category_id}", response_model=List[AlbumResponse])
async def list_albums_by_category(
    category_id: str,
    include_hidden: bool = Query(True, alias="includeHidden"),
    service: AlbumService = Depends(get_album_service),
):
    return await service.find_by_category(category_id, include_hidden=include_hidden)


@router.patch("/order/update", response_model=List[AlbumResponse])
async def update_album_order(
    data: AlbumsOrderUpdate,
    service: AlbumService = Depends(get_album_service),
    admin: dict = Depends(require_admin),
):
    return await service.update_order(data)


@router.get("/{album_id}", response_model=AlbumResponse)
async def get_album(album_id: str, service: AlbumService = Depends(get_album_service)):
    return await service.find_one(album_id)


@router.patch("/{album_id}", response_model=AlbumResponse)
async def update_album(
    album_id: str,
    data: AlbumUpdate,
    service: AlbumService = Depends(get_album_service),
    admin: dict = Depends(require_admin),
):
    return await service.update(album_id, data)


@router.patch("/{album_id}/cover", response_model=AlbumResponse)
async def set_album_cover(
    album_id: str,
    data: AlbumCoverUpdate,
    service: AlbumService = Depends(get_album_service),
    admin: dict = Depends(require_admin),
):
    return await service.set_cover_image(album_id, data.cover_image_url)


@router.delete("/{album_id}", response_model=AlbumResponse)
@limiter.limit(RATE_LIMITS["delete"])
async def delete_album(
    request: Request,
    album_id: str,
    service: AlbumService = Depends(get_album_service),
    admin: dict = Depends(require_admin),
):
    """
    Delete an album and its photos.
    Their stored files are queued for the storage purge.
    """
    return await service.remove(album_id)
