import warnings

import pytest
from sqlalchemy import select
from sqlalchemy.orm import configure_mappers

from gallery.database import Base
from gallery.errors import ConstraintError, DuplicateError, NotFoundError, ValidationError
from gallery.models import PendingStorageDeletion, Photo
from gallery.schemas import (
    AlbumCreate,
    AlbumsOrderUpdate,
    AlbumUpdate,
    CategoriesOrderUpdate,
    CategoryCreate,
    CategoryUpdate,
    OrderItem,
    PhotoCreate,
    PhotosOrderUpdate,
    PhotoUpdate,
)
from gallery.services.album_service import AlbumService
from gallery.services.category_service import CategoryService
from gallery.services.photo_service import PhotoService
from gallery.services.stats_service import StatsService
from gallery.services.upload_service import IncomingFile

STORE = "https://res.cloudinary.com/demo/image/upload/v1"
ONE = "1f0c5e2a9b3d4c7e8f6a1b2c3d4e5f60"
TWO = "2aaa0b1c2d3e4f5a6b7c8d9e0f1a2b3c"


async def make_category(db, name="Nature", **kwargs):
    return await CategoryService(db).create(CategoryCreate(name=name, **kwargs))


async def make_album(db, category_id, name="Mountains", **kwargs):
    return await AlbumService(db).create(AlbumCreate(name=name, category_id=category_id, **kwargs))


async def make_photo(db, storage, album_id, file_id=ONE, **kwargs):
    return await PhotoService(db, storage).create(
        PhotoCreate(
            album_id=album_id,
            filename=f"{file_id}.jpg",
            original_url=f"{STORE}/photos/original/{file_id}.jpg",
            thumbnail_url=f"{STORE}/photos/thumbnails/{file_id}_thumbnail.jpg",
            width=800,
            height=600,
            **kwargs,
        )
    )


# Categories

async def test_category_slug_generated_from_name(db):
    category = await make_category(db, "Wedding Photos 2024")
    assert category.slug == "wedding-photos-2024"
    assert category.show_in_menu is True


async def test_display_order_defaults_to_max_plus_one(db):
    first = await make_category(db, "First")
    assert first.display_order == 0

    await make_category(db, "Explicit", display_order=7)
    third = await make_category(db, "Third")
    assert third.display_order == 8


async def test_duplicate_category_slug_rejected(db):
    await make_category(db, "Nature")
    with pytest.raises(DuplicateError) as exc_info:
        await make_category(db, "nature!")
    assert "nature" in exc_info.value.message
    assert exc_info.value.details == {"slug": "nature"}


async def test_slug_that_cannot_be_derived_is_rejected(db):
    with pytest.raises(ValidationError):
        await make_category(db, "!!")


async def test_category_update_keeps_slug_on_rename(db):
    category = await make_category(db, "Nature")
    updated = await CategoryService(db).update(category.id, CategoryUpdate(name="Wildlife"))
    assert updated.name == "Wildlife"
    assert updated.slug == "nature"


async def test_category_update_to_own_slug_succeeds(db):
    category = await make_category(db, "Nature")
    updated = await CategoryService(db).update(category.id, CategoryUpdate(slug="nature", show_in_menu=False))
    assert updated.slug == "nature"
    assert updated.show_in_menu is False


async def test_category_update_to_taken_slug_fails(db):
    await make_category(db, "Nature")
    other = await make_category(db, "Urban")
    with pytest.raises(DuplicateError):
        await CategoryService(db).update(other.id, CategoryUpdate(slug="nature"))


async def test_category_update_missing_raises_not_found(db):
    with pytest.raises(NotFoundError):
        await CategoryService(db).update("missing-id", CategoryUpdate(name="Anything"))
    with pytest.raises(NotFoundError):
        await CategoryService(db).update("missing-id", CategoryUpdate())


async def test_find_all_orders_and_filters_menu(db):
    service = CategoryService(db)
    await make_category(db, "Late", display_order=5)
    await make_category(db, "Hidden", display_order=1, show_in_menu=False)
    await make_category(db, "Early", display_order=0)

    assert [c.name for c in await service.find_all()] == ["Early", "Hidden", "Late"]
    assert [c.name for c in await service.find_all(menu_only=True)] == ["Early", "Late"]


async def test_find_by_slug(db):
    category = await make_category(db, "Nature")
    assert (await CategoryService(db).find_by_slug("nature")).id == category.id
    with pytest.raises(NotFoundError):
        await CategoryService(db).find_by_slug("missing")


async def test_category_delete_blocked_by_albums(db):
    category = await make_category(db, "Nature")
    await make_album(db, category.id, "Mountains")
    await make_album(db, category.id, "Rivers")

    with pytest.raises(ConstraintError) as exc_info:
        await CategoryService(db).remove(category.id)

    assert "2" in exc_info.value.message
    assert exc_info.value.details["albumCount"] == 2


async def test_category_delete_without_albums(db):
    category = await make_category(db, "Nature")
    await CategoryService(db).remove(category.id)
    with pytest.raises(NotFoundError):
        await CategoryService(db).find_one(category.id)


async def test_category_reorder(db):
    a = await make_category(db, "A")
    b = await make_category(db, "B")

    result = await CategoryService(db).update_order(
        CategoriesOrderUpdate(categories=[OrderItem(id=a.id, display_order=1), OrderItem(id=b.id, display_order=0)])
    )

    assert [c.name for c in result] == ["B", "A"]


async def test_reorder_with_unknown_id_writes_nothing(db):
    a = await make_category(db, "A")
    b = await make_category(db, "B")

    with pytest.raises(NotFoundError) as exc_info:
        await CategoryService(db).update_order(
            CategoriesOrderUpdate(
                categories=[OrderItem(id=a.id, display_order=9), OrderItem(id="ghost", display_order=0)]
            )
        )

    assert exc_info.value.details["missingIds"] == ["ghost"]
    assert (await CategoryService(db).find_one(a.id)).display_order == 0
    assert (await CategoryService(db).find_one(b.id)).display_order == 1


# Albums

async def test_album_requires_existing_category(db):
    with pytest.raises(NotFoundError):
        await make_album(db, "missing-category")


async def test_album_display_order_scoped_to_category(db):
    nature = await make_category(db, "Nature")
    urban = await make_category(db, "Urban")

    first = await make_album(db, nature.id, "Mountains")
    second = await make_album(db, nature.id, "Rivers")
    other = await make_album(db, urban.id, "Streets")

    assert (first.display_order, second.display_order, other.display_order) == (0, 1, 0)


async def test_album_slug_unique_across_categories(db):
    nature = await make_category(db, "Nature")
    urban = await make_category(db, "Urban")
    await make_album(db, nature.id, "Night")
    with pytest.raises(DuplicateError):
        await make_album(db, urban.id, "Night")


async def test_album_and_category_slugs_are_separate_domains(db):
    category = await make_category(db, "Nature")
    album = await make_album(db, category.id, "Nature")
    assert album.slug == category.slug == "nature"


async def test_album_update_move_and_clear_description(db):
    nature = await make_category(db, "Nature")
    urban = await make_category(db, "Urban")
    album = await make_album(db, nature.id, "Mountains", description="Peaks")

    updated = await AlbumService(db).update(album.id, AlbumUpdate(category_id=urban.id, description=None))

    assert updated.category_id == urban.id
    assert updated.description is None


async def test_album_update_to_missing_category_fails(db):
    category = await make_category(db, "Nature")
    album = await make_album(db, category.id)
    with pytest.raises(NotFoundError):
        await AlbumService(db).update(album.id, AlbumUpdate(category_id="missing"))


async def test_album_listing_hides_hidden_on_request(db):
    category = await make_category(db, "Nature")
    await make_album(db, category.id, "Visible")
    await make_album(db, category.id, "Secret", is_hidden=True)

    service = AlbumService(db)
    assert len(await service.find_all()) == 2
    assert [a.name for a in await service.find_all(include_hidden=False)] == ["Visible"]
    assert [a.name for a in await service.find_by_category(category.id, include_hidden=False)] == ["Visible"]


async def test_set_cover_image(db):
    category = await make_category(db, "Nature")
    album = await make_album(db, category.id)
    updated = await AlbumService(db).set_cover_image(album.id, f"{STORE}/photos/original/cover.jpg")
    assert updated.cover_image_url.endswith("cover.jpg")


async def test_album_delete_removes_photos_and_queues_files(db, fake_storage):
    category = await make_category(db, "Nature")
    album = await make_album(db, category.id)
    await make_photo(db, fake_storage, album.id, ONE)
    await make_photo(db, fake_storage, album.id, TWO)

    await AlbumService(db).remove(album.id)

    photos = (await db.execute(select(Photo))).scalars().all()
    queued = (await db.execute(select(PendingStorageDeletion.file_id))).scalars().all()
    assert photos == []
    assert sorted(queued) == [ONE, TWO]
    assert fake_storage.deleted == []


async def test_album_reorder(db):
    category = await make_category(db, "Nature")
    a = await make_album(db, category.id, "Alpha")
    b = await make_album(db, category.id, "Beta")

    result = await AlbumService(db).update_order(
        AlbumsOrderUpdate(albums=[OrderItem(id=a.id, display_order=3), OrderItem(id=b.id, display_order=2)])
    )

    assert [album.name for album in result] == ["Beta", "Alpha"]


# Photos

async def test_photo_create_and_default_order(db, fake_storage):
    category = await make_category(db)
    album = await make_album(db, category.id)

    first = await make_photo(db, fake_storage, album.id, ONE)
    second = await make_photo(db, fake_storage, album.id, TWO)

    assert (first.display_order, second.display_order) == (0, 1)
    assert [p.id for p in await PhotoService(db, fake_storage).find_by_album(album.id)] == [first.id, second.id]


async def test_photo_requires_album(db, fake_storage):
    with pytest.raises(NotFoundError):
        await make_photo(db, fake_storage, "missing-album")


async def test_slider_flags(db, fake_storage):
    category = await make_category(db)
    album = await make_album(db, category.id)
    photo = await make_photo(db, fake_storage, album.id, ONE)
    await make_photo(db, fake_storage, album.id, TWO)
    service = PhotoService(db, fake_storage)

    toggled = await service.toggle_slider_status(photo.id, True)
    assert toggled.is_slider_image is True
    assert [p.id for p in await service.find_slider_photos()] == [photo.id]

    updated = await service.update(photo.id, PhotoUpdate(is_slider_image=False, display_order=4))
    assert (updated.is_slider_image, updated.display_order) == (False, 4)
    assert await service.find_slider_photos() == []


async def test_photo_delete_cleans_storage(db, fake_storage):
    category = await make_category(db)
    album = await make_album(db, category.id)
    photo = await make_photo(db, fake_storage, album.id, ONE)

    await PhotoService(db, fake_storage).remove(photo.id)

    assert fake_storage.deleted == [ONE]
    assert (await db.execute(select(PendingStorageDeletion))).scalars().all() == []
    with pytest.raises(NotFoundError):
        await PhotoService(db, fake_storage).find_one(photo.id)


async def test_photo_delete_queues_failed_cleanup(db, fake_storage):
    category = await make_category(db)
    album = await make_album(db, category.id)
    photo = await make_photo(db, fake_storage, album.id, ONE)
    fake_storage.delete_result = False

    await PhotoService(db, fake_storage).remove(photo.id)

    queued = (await db.execute(select(PendingStorageDeletion))).scalars().all()
    assert [(q.file_id, q.attempts) for q in queued] == [(ONE, 1)]
    with pytest.raises(NotFoundError):
        await PhotoService(db, fake_storage).find_one(photo.id)


async def test_photo_delete_survives_storage_exception(db, fake_storage):
    category = await make_category(db)
    album = await make_album(db, category.id)
    photo = await make_photo(db, fake_storage, album.id, ONE)
    fake_storage.delete_error = RuntimeError("store offline")

    await PhotoService(db, fake_storage).remove(photo.id)

    queued = (await db.execute(select(PendingStorageDeletion))).scalars().all()
    assert queued[0].last_error == "store offline"


@pytest.mark.parametrize(
    "original_url",
    [
        "https://cdn.example.com/img/1.jpg",
        f"{STORE}/photos/original/1.jpg",
        f"https://cdn.example.com/demo/image/upload/v1/photos/original/{ONE}.jpg",
        f"https://res.cloudinary.com/other-cloud/image/upload/v1/photos/original/{ONE}.jpg",
    ],
)
async def test_photo_delete_leaves_unrelated_files_alone(db, fake_storage, original_url):
    category = await make_category(db)
    album = await make_album(db, category.id)
    fake_storage.objects = {
        f"photos/original/{ONE}.jpg": b"1",
        f"photos/thumbnails/{ONE}_thumbnail.jpg": b"1",
        f"photos/original/{TWO}.jpg": b"2",
    }
    photo = await PhotoService(db, fake_storage).create(
        PhotoCreate(
            album_id=album.id,
            filename="1.jpg",
            original_url=original_url,
            thumbnail_url=original_url,
            width=10,
            height=10,
        )
    )

    await PhotoService(db, fake_storage).remove(photo.id)

    assert fake_storage.deleted == []
    assert len(fake_storage.objects) == 3
    assert (await db.execute(select(PendingStorageDeletion))).scalars().all() == []
    with pytest.raises(NotFoundError):
        await PhotoService(db, fake_storage).find_one(photo.id)


async def test_album_delete_skips_foreign_urls(db, fake_storage):
    category = await make_category(db)
    album = await make_album(db, category.id)
    await make_photo(db, fake_storage, album.id, ONE)
    await PhotoService(db, fake_storage).create(
        PhotoCreate(
            album_id=album.id,
            filename="1.jpg",
            original_url="https://cdn.example.com/img/1.jpg",
            thumbnail_url="https://cdn.example.com/img/1_thumb.jpg",
            width=10,
            height=10,
        )
    )

    await AlbumService(db).remove(album.id)

    queued = (await db.execute(select(PendingStorageDeletion.file_id))).scalars().all()
    assert queued == [ONE]


async def test_purge_pending_deletions(db, fake_storage):
    db.add_all([PendingStorageDeletion(file_id="a", attempts=1), PendingStorageDeletion(file_id="b", attempts=1)])
    await db.flush()
    service = PhotoService(db, fake_storage)

    fake_storage.delete_result = False
    result = await service.purge_pending_deletions()
    assert (result.purged, result.remaining) == (0, 2)
    attempts = (await db.execute(select(PendingStorageDeletion.attempts))).scalars().all()
    assert attempts == [2, 2]

    fake_storage.delete_result = True
    result = await service.purge_pending_deletions()
    assert (result.purged, result.remaining) == (2, 0)
    assert fake_storage.deleted == ["a", "b", "a", "b"]


async def test_photo_reorder_is_all_or_nothing(db, fake_storage):
    category = await make_category(db)
    album = await make_album(db, category.id)
    one = await make_photo(db, fake_storage, album.id, ONE)
    two = await make_photo(db, fake_storage, album.id, TWO)
    service = PhotoService(db, fake_storage)

    with pytest.raises(NotFoundError):
        await service.update_order(
            PhotosOrderUpdate(photos=[OrderItem(id=one.id, display_order=5), OrderItem(id="ghost", display_order=6)])
        )
    assert (await service.find_one(one.id)).display_order == 0

    result = await service.update_order(
        PhotosOrderUpdate(photos=[OrderItem(id=one.id, display_order=1), OrderItem(id=two.id, display_order=0)])
    )
    assert [p.id for p in result] == [two.id, one.id]


async def test_photo_upload_checks_album_first(db, fake_storage, image_bytes):
    data = image_bytes((300, 200))
    with pytest.raises(NotFoundError):
        await PhotoService(db, fake_storage).upload(
            IncomingFile(buffer=data, mimetype="image/jpeg", size=len(data), original_name="a.jpg"),
            "missing-album",
        )
    assert fake_storage.objects == {}


# Stats

async def test_stats_counts(db, fake_storage):
    category = await make_category(db)
    album = await make_album(db, category.id)
    await make_photo(db, fake_storage, album.id, ONE, is_slider_image=True)
    await make_photo(db, fake_storage, album.id, TWO)
    db.add(PendingStorageDeletion(file_id="old", attempts=1))
    await db.flush()

    stats = await StatsService(db).get_stats()

    assert stats.model_dump(by_alias=True) == {
        "totalCategories": 1,
        "totalAlbums": 1,
        "totalPhotos": 2,
        "sliderPhotos": 1,
        "pendingStorageDeletions": 1,
    }


def test_mappers_configure_without_warnings():
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        configure_mappers()

    # Parents and children are read with explicit queries, never through relationships
    assert [mapper.class_ for mapper in Base.registry.mappers if mapper.relationships] == []
