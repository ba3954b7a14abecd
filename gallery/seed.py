"""
Bulk import a directory of images into one album.

Usage:
    python -m gallery.seed ./photos --category "Nature" --album "Mountains 2024"

The category and album are reused when their slugs already exist.
"""
import argparse
import asyncio
import logging
import mimetypes
import os
from typing import List

from gallery.database import AsyncSessionLocal, close_db, init_db
from gallery.errors import GalleryError, NotFoundError
from gallery.models import Album, Category
from gallery.schemas import AlbumCreate, CategoryCreate
from gallery.services.album_service import AlbumService
from gallery.services.category_service import CategoryService
from gallery.services.photo_service import PhotoService
from gallery.services.storage_service import storage
from gallery.services.upload_service import ALLOWED_MIME_TYPES, IncomingFile
from gallery.utils.slug import make_slug

log = logging.getLogger("gallery.seed")


def find_images(directory: str) -> List[str]:
    """Image files directly inside the directory, sorted by name."""
    paths = []
    for name in sorted(os.listdir(directory)):
        path = os.path.join(directory, name)
        mimetype, _ = mimetypes.guess_type(name)
        if os.path.isfile(path) and mimetype in ALLOWED_MIME_TYPES:
            paths.append(path)
    return paths


async def get_or_create_category(service: CategoryService, name: str) -> Category:
    try:
        return await service.find_by_slug(make_slug(name))
    except NotFoundError:
        return await service.create(CategoryCreate(name=name))


async def get_or_create_album(service: AlbumService, name: str, category_id: str) -> Album:
    try:
        return await service.find_by_slug(make_slug(name))
    except NotFoundError:
        return await service.create(AlbumCreate(name=name, category_id=category_id))


def load_file(path: str) -> IncomingFile:
    with open(path, "rb") as fh:
        buffer = fh.read()

    mimetype, _ = mimetypes.guess_type(path)
    return IncomingFile(
        buffer=buffer,
        mimetype=mimetype or "application/octet-stream",
        size=len(buffer),
        original_name=os.path.basename(path),
    )


async def seed(directory: str, category_name: str, album_name: str) -> dict:
    await init_db()

    async with AsyncSessionLocal() as db:
        category = await get_or_create_category(CategoryService(db), category_name)
        album = await get_or_create_album(AlbumService(db), album_name, category.id)
        await db.commit()

    images = find_images(directory)
    log.info(f"Importing {len(images)} image(s) from {directory} into album {album.slug}")

    uploaded, failed = 0, 0
    for path in images:
        async with AsyncSessionLocal() as db:
            try:
                photo = await PhotoService(db, storage).upload(load_file(path), album.id)
                await db.commit()
                uploaded += 1
                log.info(f"Uploaded {os.path.basename(path)} as photo {photo.id}")
            except GalleryError as e:
                await db.rollback()
                failed += 1
                log.error(f"Failed to import {os.path.basename(path)}: {e.message}")

    await storage.close()
    await close_db()

    summary = {"album": album.slug, "found": len(images), "uploaded": uploaded, "failed": failed}
    log.info(f"Import finished: {summary}")
    return summary


def main():
    parser = argparse.ArgumentParser(description="Import a directory of images into a gallery album")
    parser.add_argument("directory", help="Directory containing the images")
    parser.add_argument("--category", required=True, help="Category name (created if missing)")
    parser.add_argument("--album", required=True, help="Album name (created if missing)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not os.path.isdir(args.directory):
        parser.error(f"Not a directory: {args.directory}")

    asyncio.run(seed(args.directory, args.category, args.album))


if __name__ == "__main__":
    main()
