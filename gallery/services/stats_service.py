"""
Dashboard counters.
"""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gallery.models import Album, Category, PendingStorageDeletion, Photo
from gallery.schemas import StatsResponse


class StatsService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _count(self, column, *criteria) -> int:
        result = await self.db.execute(select(func.count(column)).where(*criteria))
        return result.scalar() or 0

    async def get_stats(self) -> StatsResponse:
        return StatsResponse(
            total_categories=await self._count(Category.id),
            total_albums=await self._count(Album.id),
            total_photos=await self._count(Photo.id),
            slider_photos=await self._count(Photo.id, Photo.is_slider_image.is_(True)),
            pending_storage_deletions=await self._count(PendingStorageDeletion.id),
        )
