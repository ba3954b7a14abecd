"""
Display-order and uniqueness helpers shared by the content services.
"""
from typing import List, Optional, Type

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gallery.errors import DuplicateError, NotFoundError, ValidationError
from gallery.schemas import OrderItem
from gallery.utils.slug import make_slug


async def next_display_order(db: AsyncSession, model: Type, *criteria) -> int:
    """Return max(display_order) + 1 within the scope, or 0 when the scope is empty."""
    result = await db.execute(select(func.max(model.display_order)).where(*criteria))
    current_max = result.scalar()
    return 0 if current_max is None else current_max + 1


def resolve_slug(slug: Optional[str], name: str) -> str:
    resolved = slug or make_slug(name)
    if not resolved:
        raise ValidationError(
            f'Cannot derive a slug from name "{name}"; provide one explicitly',
            details={"fields": ["slug"]},
        )
    return resolved


async def ensure_unique_slug(
    db: AsyncSession,
    model: Type,
    slug: str,
    entity: str,
    exclude_id: Optional[str] = None,
) -> None:
    """
    Raise DuplicateError if another record of this type already uses the slug.
    The record being updated is excluded by id.
    """
    query = select(model.id).where(model.slug == slug)
    if exclude_id is not None:
        query = query.where(model.id != exclude_id)
    result = await db.execute(query.limit(1))
    if result.scalar_one_or_none() is not None:
        raise DuplicateError(
            f'{entity} with slug "{slug}" already exists',
            details={"slug": slug},
        )


async def apply_order(db: AsyncSession, model: Type, items: List[OrderItem], entity: str) -> None:
    """
    Apply a reorder batch.

    Every id is checked before any write; the writes run in the caller's
    transaction so the batch commits or rolls back as a whole.
    """
    ids = [item.id for item in items]
    result = await db.execute(select(model.id).where(model.id.in_(ids)))
    existing = set(result.scalars().all())
    missing = [item_id for item_id in ids if item_id not in existing]
    if missing:
        raise NotFoundError(
            f"Some {entity} records were not found: {', '.join(missing)}",
            details={"missingIds": missing},
        )

    for item in items:
        await db.execute(
            update(model)
            .where(model.id == item.id)
            .values(display_order=item.display_order)
        )
    await db.flush()


async def conditional_update(db: AsyncSession, model: Type, record_id: str, values: dict, entity: str) -> None:
    """Single UPDATE ... WHERE id; zero affected rows means the record does not exist."""
    if not values:
        result = await db.execute(select(model.id).where(model.id == record_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundError(f"{entity} with ID {record_id} not found")
        return

    result = await db.execute(
        update(model)
        .where(model.id == record_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError(f"{entity} with ID {record_id} not found")
