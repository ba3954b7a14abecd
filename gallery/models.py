"""
SQLAlchemy models for the gallery.
All database models inherit from Base (declarative base).
"""
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from gallery.database import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Category(TimestampMixin, Base):
    """
    Top-level gallery section.
    Owns albums; cannot be deleted while any album references it.
    """
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    display_order = Column(Integer, nullable=False, default=0, index=True)
    show_in_menu = Column(Boolean, nullable=False, default=True)


class Album(TimestampMixin, Base):
    """
    Photo album inside a category.
    Slug is unique across all albums.
    """
    __tablename__ = "albums"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=False, index=True)
    display_order = Column(Integer, nullable=False, default=0, index=True)
    cover_image_url = Column(String, nullable=True)
    is_hidden = Column(Boolean, nullable=False, default=False)


class Photo(TimestampMixin, Base):
    """
    Uploaded photo with the public URLs of its stored original and thumbnail.
    """
    __tablename__ = "photos"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    album_id = Column(String(36), ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String, nullable=False)
    original_url = Column(String, nullable=False)
    thumbnail_url = Column(String, nullable=False)
    display_order = Column(Integer, nullable=False, default=0, index=True)
    is_slider_image = Column(Boolean, nullable=False, default=False, index=True)
    width = Column(Integer, nullable=False, default=0)
    height = Column(Integer, nullable=False, default=0)


class PendingStorageDeletion(TimestampMixin, Base):
    """
    Storage objects left behind by a deleted photo.
    Rows are removed once the objects are purged from storage.
    """
    __tablename__ = "pending_storage_deletions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(String(64), nullable=False, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
