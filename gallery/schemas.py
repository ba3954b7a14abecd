"""
Pydantic schemas for request and response data validation.
Requests are validated once at the API boundary; services receive these typed objects.
JSON uses camelCase field names, Python code uses snake_case.
"""
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Dict, List, Optional

SLUG_PATTERN = r"^[a-z0-9-]+$"


class CamelModel(BaseModel):
    """Base schema: camelCase aliases, accepts snake_case too, reads ORM objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def reject_null(value, info: ValidationInfo):
    """Explicit null is only accepted for nullable columns."""
    if value is None:
        raise ValueError(f"{info.field_name} cannot be null")
    return value


# Categories

class CategoryCreate(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    slug: Optional[str] = Field(default=None, min_length=2, max_length=100, pattern=SLUG_PATTERN)
    display_order: Optional[int] = None
    show_in_menu: bool = True


class CategoryUpdate(CamelModel):
    """Partial update: only fields present in the request body change."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    slug: Optional[str] = Field(default=None, min_length=2, max_length=100, pattern=SLUG_PATTERN)
    display_order: Optional[int] = None
    show_in_menu: Optional[bool] = None

    @field_validator("name", "slug", "display_order", "show_in_menu")
    @classmethod
    def not_null(cls, v, info: ValidationInfo):
        return reject_null(v, info)


class CategoryResponse(CamelModel):
    id: str
    name: str
    slug: str
    display_order: int
    show_in_menu: bool
    created_at: datetime
    updated_at: datetime


# Albums

class AlbumCreate(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    slug: Optional[str] = Field(default=None, min_length=2, max_length=100, pattern=SLUG_PATTERN)
    description: Optional[str] = Field(default=None, max_length=1000)
    category_id: str
    display_order: Optional[int] = None
    is_hidden: bool = False


class AlbumUpdate(CamelModel):
    """Partial update; description and coverImageUrl may be cleared with null."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    slug: Optional[str] = Field(default=None, min_length=2, max_length=100, pattern=SLUG_PATTERN)
    description: Optional[str] = Field(default=None, max_length=1000)
    category_id: Optional[str] = None
    display_order: Optional[int] = None
    cover_image_url: Optional[str] = None
    is_hidden: Optional[bool] = None

    @field_validator("name", "slug", "category_id", "display_order", "is_hidden")
    @classmethod
    def not_null(cls, v, info: ValidationInfo):
        return reject_null(v, info)


class AlbumCoverUpdate(CamelModel):
    cover_image_url: str = Field(min_length=1)


class AlbumResponse(CamelModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    category_id: str
    display_order: int
    cover_image_url: Optional[str] = None
    is_hidden: bool
    created_at: datetime
    updated_at: datetime


# Photos

class PhotoCreate(CamelModel):
    """Metadata-only photo record for files already stored elsewhere."""

    album_id: str
    filename: str = Field(min_length=1)
    original_url: str = Field(min_length=1)
    thumbnail_url: str = Field(min_length=1)
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    display_order: Optional[int] = None
    is_slider_image: bool = False


class PhotoUpdate(CamelModel):
    display_order: Optional[int] = None
    is_slider_image: Optional[bool] = None

    @field_validator("display_order", "is_slider_image")
    @classmethod
    def not_null(cls, v, info: ValidationInfo):
        return reject_null(v, info)


class SliderStatusUpdate(CamelModel):
    is_slider_image: bool


class PhotoResponse(CamelModel):
    id: str
    album_id: str
    filename: str
    original_url: str
    thumbnail_url: str
    display_order: int
    is_slider_image: bool
    width: int
    height: int
    created_at: datetime
    updated_at: datetime


class UploadResult(CamelModel):
    """
    Outcome of storing one uploaded image and its derivatives.
    webp_urls is None when WebP derivatives were disabled or failed.
    """
    file_id: str
    filename: str
    original_url: str
    thumbnail_url: str
    width: int
    height: int
    webp_urls: Optional[Dict[str, str]] = None


# Ordering

class OrderItem(CamelModel):
    id: str
    display_order: int


def validate_unique_ids(items: List[OrderItem]) -> List[OrderItem]:
    ids = [item.id for item in items]
    if len(ids) != len(set(ids)):
        raise ValueError("Duplicate IDs are not allowed")
    return items


class CategoriesOrderUpdate(CamelModel):
    categories: List[OrderItem] = Field(min_length=1)

    @field_validator("categories")
    @classmethod
    def unique_ids(cls, v):
        return validate_unique_ids(v)


class AlbumsOrderUpdate(CamelModel):
    albums: List[OrderItem] = Field(min_length=1)

    @field_validator("albums")
    @classmethod
    def unique_ids(cls, v):
        return validate_unique_ids(v)


class PhotosOrderUpdate(CamelModel):
    photos: List[OrderItem] = Field(min_length=1)

    @field_validator("photos")
    @classmethod
    def unique_ids(cls, v):
        return validate_unique_ids(v)


# Stats and maintenance

class StatsResponse(CamelModel):
    total_categories: int
    total_albums: int
    total_photos: int
    slider_photos: int
    pending_storage_deletions: int


class PurgeResult(CamelModel):
    purged: int
    remaining: int
