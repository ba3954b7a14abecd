"""
Dashboard statistics route.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gallery.database import get_db
from gallery.schemas import StatsResponse
from gallery.services.stats_service import StatsService

router = APIRouter(tags=["Stats"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(db: AsyncSession = Depends(get_db)):
    """Counts of categories, albums, photos, slider photos and queued storage cleanups."""
    return await StatsService(db).get_stats()
