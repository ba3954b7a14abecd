"""
Photo records, uploads and stored-file cleanup.
"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gallery.errors import NotFoundError
from gallery.models import Album, PendingStorageDeletion, Photo
from gallery.schemas import PhotoCreate, PhotosOrderUpdate, PhotoUpdate, PurgeResult
from gallery.services.ordering import apply_order, conditional_update, next_display_order
from gallery.services.storage_service import CloudinaryStorage
from gallery.services.upload_service import IncomingFile, UploadService
from gallery.utils.file_ids import extract_file_id

logger = logging.getLogger(__name__)


class PhotoService:
    def __init__(
        self,
        db: AsyncSession,
        storage: CloudinaryStorage,
        upload_service: Optional[UploadService] = None,
    ) -> None:
        self.db = db
        self.storage = storage
        self.upload_service = upload_service or UploadService(storage)

    async def _ensure_album(self, album_id: str) -> None:
        result = await self.db.execute(select(Album.id).where(Album.id == album_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundError(f"Album with ID {album_id} not found")

    async def create(self, data: PhotoCreate) -> Photo:
        """
        Record a photo whose files are already stored.

        Raises:
            NotFoundError: Album does not exist
        """
        await self._ensure_album(data.album_id)

        display_order = data.display_order
        if display_order is None:
            display_order = await next_display_order(self.db, Photo, Photo.album_id == data.album_id)

        photo = Photo(
            album_id=data.album_id,
            filename=data.filename,
            original_url=data.original_url,
            thumbnail_url=data.thumbnail_url,
            width=data.width,
            height=data.height,
            display_order=display_order,
            is_slider_image=data.is_slider_image,
        )
        self.db.add(photo)
        await self.db.flush()
        await self.db.refresh(photo)

        logger.info(f"Created photo {photo.id} in album {data.album_id}, display_order={display_order}")
        return photo

    async def upload(
        self,
        file: IncomingFile,
        album_id: str,
        display_order: Optional[int] = None,
        is_slider_image: bool = False,
    ) -> Photo:
        """
        Store an uploaded image and record it as a photo of the album.

        The album is checked first so a bad album id never reaches storage.

        Raises:
            NotFoundError: Album does not exist
            ValidationError: Unsupported type or file too large
            ImageProcessingError: Thumbnail could not be generated
            StorageError: Files could not be stored
        """
        await self._ensure_album(album_id)

        result = await self.upload_service.upload_file(file)

        return await self.create(
            PhotoCreate(
                album_id=album_id,
                filename=result.filename,
                original_url=result.original_url,
                thumbnail_url=result.thumbnail_url,
                width=result.width,
                height=result.height,
                display_order=display_order,
                is_slider_image=is_slider_image,
            )
        )

    async def find_all(self) -> List[Photo]:
        result = await self.db.execute(
            select(Photo).order_by(Photo.album_id, Photo.display_order.asc(), Photo.created_at.asc())
        )
        return list(result.scalars().all())

    async def find_by_album(self, album_id: str) -> List[Photo]:
        result = await self.db.execute(
            select(Photo)
            .where(Photo.album_id == album_id)
            .order_by(Photo.display_order.asc(), Photo.created_at.asc())
        )
        return list(result.scalars().all())

    async def find_slider_photos(self) -> List[Photo]:
        result = await self.db.execute(
            select(Photo)
            .where(Photo.is_slider_image.is_(True))
            .order_by(Photo.display_order.asc(), Photo.created_at.asc())
        )
        return list(result.scalars().all())

    async def find_one(self, photo_id: str) -> Photo:
        result = await self.db.execute(
            select(Photo)
            .where(Photo.id == photo_id)
            .execution_options(populate_existing=True)
        )
        photo = result.scalar_one_or_none()
        if photo is None:
            raise NotFoundError(f"Photo with ID {photo_id} not found")
        return photo

    async def update(self, photo_id: str, data: PhotoUpdate) -> Photo:
        values = data.model_dump(exclude_unset=True)
        await conditional_update(self.db, Photo, photo_id, values, "Photo")
        logger.info(f"Updated photo {photo_id}: {sorted(values)}")
        return await self.find_one(photo_id)

    async def toggle_slider_status(self, photo_id: str, is_slider_image: bool) -> Photo:
        await conditional_update(self.db, Photo, photo_id, {"is_slider_image": is_slider_image}, "Photo")
        logger.info(f"Photo {photo_id} slider status set to {is_slider_image}")
        return await self.find_one(photo_id)

    async def remove(self, photo_id: str) -> Photo:
        """
        Delete a photo, then its stored files.

        The metadata delete always stands. When storage cleanup fails the
        file id is queued in pending_storage_deletions for a later purge.

        Raises:
            NotFoundError: Photo does not exist
        """
        photo = await self.find_one(photo_id)
        file_id = extract_file_id(photo.original_url, cloud_name=self.storage.cloud_name)

        await self.db.delete(photo)
        await self.db.flush()
        logger.info(f"Deleted photo {photo_id}")

        if not file_id:
            logger.warning(f"{photo.original_url} is not a file of this store; storage cleanup skipped")
            return photo

        last_error = None
        try:
            cleaned = await self.storage.delete_by_file_id(file_id)
            if not cleaned:
                last_error = "Storage reported an incomplete delete"
        except Exception as e:
            logger.error(f"Storage cleanup for photo {photo_id} raised: {str(e)}", exc_info=True)
            last_error = str(e)

        if last_error is not None:
            self.db.add(PendingStorageDeletion(file_id=file_id, attempts=1, last_error=last_error))
            await self.db.flush()
            logger.error(f"Storage cleanup for {file_id} failed; queued for purge")

        return photo

    async def update_order(self, data: PhotosOrderUpdate) -> List[Photo]:
        await apply_order(self.db, Photo, data.photos, "photo")
        logger.info(f"Reordered {len(data.photos)} photos")
        self.db.expire_all()
        ids = [item.id for item in data.photos]
        result = await self.db.execute(
            select(Photo).where(Photo.id.in_(ids)).order_by(Photo.display_order.asc(), Photo.created_at.asc())
        )
        return list(result.scalars().all())

    async def purge_pending_deletions(self) -> PurgeResult:
        """
        Retry every queued storage cleanup.

        Rows whose files are now gone are removed; the rest record the attempt.
        """
        result = await self.db.execute(select(PendingStorageDeletion).order_by(PendingStorageDeletion.id))
        pending = list(result.scalars().all())

        purged = 0
        for entry in pending:
            try:
                cleaned = await self.storage.delete_by_file_id(entry.file_id)
                error = None if cleaned else "Storage reported an incomplete delete"
            except Exception as e:
                logger.error(f"Purge of {entry.file_id} raised: {str(e)}", exc_info=True)
                error = str(e)

            if error is None:
                await self.db.delete(entry)
                purged += 1
            else:
                entry.attempts = (entry.attempts or 0) + 1
                entry.last_error = error

        await self.db.flush()
        remaining = len(pending) - purged
        logger.info(f"Purged {purged} pending storage deletion(s), {remaining} remaining")
        return PurgeResult(purged=purged, remaining=remaining)
