"""
Album CRUD, ordering and cover selection.
"""
import logging
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gallery.config import settings
from gallery.errors import DuplicateError, NotFoundError
from gallery.models import Album, Category, PendingStorageDeletion, Photo
from gallery.schemas import AlbumCreate, AlbumsOrderUpdate, AlbumUpdate
from gallery.services.ordering import (
    apply_order,
    conditional_update,
    ensure_unique_slug,
    next_display_order,
    resolve_slug,
)
from gallery.utils.file_ids import extract_file_id

logger = logging.getLogger(__name__)


class AlbumService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _ensure_category(self, category_id: str) -> None:
        result = await self.db.execute(select(Category.id).where(Category.id == category_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundError(f"Category with ID {category_id} not found")

    async def create(self, data: AlbumCreate) -> Album:
        """
        Create an album inside an existing category.

        Raises:
            NotFoundError: Category does not exist
            DuplicateError: Slug already used by another album
        """
        await self._ensure_category(data.category_id)

        slug = resolve_slug(data.slug, data.name)
        await ensure_unique_slug(self.db, Album, slug, "Album")

        display_order = data.display_order
        if display_order is None:
            display_order = await next_display_order(self.db, Album, Album.category_id == data.category_id)

        album = Album(
            name=data.name,
            slug=slug,
            description=data.description,
            category_id=data.category_id,
            display_order=display_order,
            is_hidden=data.is_hidden,
        )
        self.db.add(album)
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise DuplicateError(f'Album with slug "{slug}" already exists', details={"slug": slug}) from e
        await self.db.refresh(album)

        logger.info(f"Created album {album.id} ({slug}) in category {data.category_id}")
        return album

    async def find_all(self, include_hidden: bool = True) -> List[Album]:
        query = select(Album).order_by(Album.display_order.asc(), Album.created_at.asc())
        if not include_hidden:
            query = query.where(Album.is_hidden.is_(False))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_by_category(self, category_id: str, include_hidden: bool = True) -> List[Album]:
        query = (
            select(Album)
            .where(Album.category_id == category_id)
            .order_by(Album.display_order.asc(), Album.created_at.asc())
        )
        if not include_hidden:
            query = query.where(Album.is_hidden.is_(False))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_one(self, album_id: str) -> Album:
        result = await self.db.execute(
            select(Album)
            .where(Album.id == album_id)
            .execution_options(populate_existing=True)
        )
        album = result.scalar_one_or_none()
        if album is None:
            raise NotFoundError(f"Album with ID {album_id} not found")
        return album

    async def find_by_slug(self, slug: str) -> Album:
        result = await self.db.execute(select(Album).where(Album.slug == slug))
        album = result.scalar_one_or_none()
        if album is None:
            raise NotFoundError(f"Album with slug {slug} not found")
        return album

    async def update(self, album_id: str, data: AlbumUpdate) -> Album:
        """
        Partial update. Moving an album requires the target category to exist.

        Raises:
            NotFoundError: Album or target category does not exist
            DuplicateError: New slug used by another album
        """
        values = data.model_dump(exclude_unset=True)
        if "category_id" in values:
            await self._ensure_category(values["category_id"])
        if "slug" in values:
            await ensure_unique_slug(self.db, Album, values["slug"], "Album", exclude_id=album_id)

        try:
            await conditional_update(self.db, Album, album_id, values, "Album")
        except IntegrityError as e:
            raise DuplicateError(
                f'Album with slug "{values.get("slug")}" already exists',
                details={"slug": values.get("slug")},
            ) from e

        logger.info(f"Updated album {album_id}: {sorted(values)}")
        return await self.find_one(album_id)

    async def set_cover_image(self, album_id: str, cover_image_url: str) -> Album:
        await conditional_update(self.db, Album, album_id, {"cover_image_url": cover_image_url}, "Album")
        logger.info(f"Set cover image for album {album_id}")
        return await self.find_one(album_id)

    async def remove(self, album_id: str) -> Album:
        """
        Delete an album together with its photos.

        Stored files of the removed photos are queued for cleanup rather than
        deleted inline; the queue is drained by the storage purge.
        """
        album = await self.find_one(album_id)

        result = await self.db.execute(select(Photo.original_url).where(Photo.album_id == album_id))
        file_ids = []
        for url in result.scalars().all():
            file_id = extract_file_id(url, cloud_name=settings.CLOUDINARY_CLOUD_NAME)
            if file_id:
                file_ids.append(file_id)

        await self.db.execute(delete(Photo).where(Photo.album_id == album_id))
        for file_id in file_ids:
            self.db.add(PendingStorageDeletion(file_id=file_id, attempts=0))

        await self.db.delete(album)
        await self.db.flush()

        logger.info(f"Deleted album {album_id}; queued {len(file_ids)} stored file(s) for cleanup")
        return album

    async def update_order(self, data: AlbumsOrderUpdate) -> List[Album]:
        await apply_order(self.db, Album, data.albums, "album")
        logger.info(f"Reordered {len(data.albums)} albums")
        self.db.expire_all()
        return await self.find_all()
