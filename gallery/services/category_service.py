"""
Category CRUD and ordering.
"""
import logging
from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gallery.errors import ConstraintError, DuplicateError, NotFoundError
from gallery.models import Album, Category
from gallery.schemas import CategoriesOrderUpdate, CategoryCreate, CategoryUpdate
from gallery.services.ordering import (
    apply_order,
    conditional_update,
    ensure_unique_slug,
    next_display_order,
    resolve_slug,
)

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, data: CategoryCreate) -> Category:
        """
        Create a category.

        Slug defaults to one derived from the name; display order defaults to
        the end of the list.

        Raises:
            DuplicateError: Slug already used by another category
        """
        slug = resolve_slug(data.slug, data.name)
        await ensure_unique_slug(self.db, Category, slug, "Category")

        display_order = data.display_order
        if display_order is None:
            display_order = await next_display_order(self.db, Category)

        category = Category(
            name=data.name,
            slug=slug,
            display_order=display_order,
            show_in_menu=data.show_in_menu,
        )
        self.db.add(category)
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise DuplicateError(f'Category with slug "{slug}" already exists', details={"slug": slug}) from e
        await self.db.refresh(category)

        logger.info(f"Created category {category.id} ({slug}), display_order={display_order}")
        return category

    async def find_all(self, menu_only: bool = False) -> List[Category]:
        query = select(Category).order_by(Category.display_order.asc(), Category.created_at.asc())
        if menu_only:
            query = query.where(Category.show_in_menu.is_(True))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_one(self, category_id: str) -> Category:
        result = await self.db.execute(
            select(Category)
            .where(Category.id == category_id)
            .execution_options(populate_existing=True)
        )
        category = result.scalar_one_or_none()
        if category is None:
            raise NotFoundError(f"Category with ID {category_id} not found")
        return category

    async def find_by_slug(self, slug: str) -> Category:
        result = await self.db.execute(select(Category).where(Category.slug == slug))
        category = result.scalar_one_or_none()
        if category is None:
            raise NotFoundError(f"Category with slug {slug} not found")
        return category

    async def update(self, category_id: str, data: CategoryUpdate) -> Category:
        """
        Partial update. Renaming never regenerates the slug.

        Raises:
            NotFoundError: Category does not exist
            DuplicateError: New slug used by another category
        """
        values = data.model_dump(exclude_unset=True)
        if "slug" in values:
            await ensure_unique_slug(self.db, Category, values["slug"], "Category", exclude_id=category_id)

        try:
            await conditional_update(self.db, Category, category_id, values, "Category")
        except IntegrityError as e:
            raise DuplicateError(
                f'Category with slug "{values.get("slug")}" already exists',
                details={"slug": values.get("slug")},
            ) from e

        logger.info(f"Updated category {category_id}: {sorted(values)}")
        return await self.find_one(category_id)

    async def remove(self, category_id: str) -> Category:
        """
        Delete a category that owns no albums.

        Raises:
            NotFoundError: Category does not exist
            ConstraintError: Albums still reference the category
        """
        category = await self.find_one(category_id)

        result = await self.db.execute(
            select(func.count(Album.id)).where(Album.category_id == category_id)
        )
        album_count = result.scalar() or 0
        if album_count > 0:
            raise ConstraintError(
                f"Cannot delete category: it still contains {album_count} album(s)",
                details={"albumCount": album_count},
            )

        await self.db.delete(category)
        await self.db.flush()
        logger.info(f"Deleted category {category_id}")
        return category

    async def update_order(self, data: CategoriesOrderUpdate) -> List[Category]:
        await apply_order(self.db, Category, data.categories, "category")
        logger.info(f"Reordered {len(data.categories)} categories")
        self.db.expire_all()
        return await self.find_all()
