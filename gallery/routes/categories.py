"""
Category routes.
Reads are public; writes require an admin token.
"""
from typing import List

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from gallery.database import get_db
from gallery.schemas import CategoriesOrderUpdate, CategoryCreate, CategoryResponse, CategoryUpdate
from gallery.services.category_service import CategoryService
from gallery.utils.jwt_auth import require_admin
from gallery.utils.rate_limit import RATE_LIMITS, limiter

router = APIRouter(prefix="/categories", tags=["Categories"])


def get_category_service(db: AsyncSession = Depends(get_db)) -> CategoryService:
    return CategoryService(db)


@router.get("", response_model=List[CategoryResponse])
async def list_categories(
    menu_only: bool = Query(False, alias="menuOnly"),
    service: CategoryService = Depends(get_category_service),
):
    """
    List categories ordered by display order.

    Args:
        menu_only: Only categories shown in the site menu
    """
    return await service.find_all(menu_only=menu_only)


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    service: CategoryService = Depends(get_category_service),
    admin: dict = Depends(require_admin),
):
    return await service.create(data)


@router.get("/slug/{slug}", response_model=CategoryResponse)
async def get_category_by_slug(slug: str, service: CategoryService = Depends(get_category_service)):
    return await service.find_by_slug(slug)


@router.patch("/order/update", response_model=List[CategoryResponse])
async def update_category_order(
    data: CategoriesOrderUpdate,
    service: CategoryService = Depends(get_category_service),
    admin: dict = Depends(require_admin),
):
    """
    Reorder categories in one transaction.
    Every id must exist, otherwise nothing is written.
    """
    return await service.update_order(data)


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(category_id: str, service: CategoryService = Depends(get_category_service)):
    return await service.find_one(category_id)


@router.patch("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: str,
    data: CategoryUpdate,
    service: CategoryService = Depends(get_category_service),
    admin: dict = Depends(require_admin),
):
    return await service.update(category_id, data)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(RATE_LIMITS["delete"])
async def delete_category(
    request: Request,
    category_id: str,
    service: CategoryService = Depends(get_category_service),
    admin: dict = Depends(require_admin),
):
    """
    Delete a category.

    Raises:
        ConstraintError: 400 while albums still belong to the category
    """
    await service.remove(category_id)
