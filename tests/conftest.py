import io
import os
from typing import Dict, List

# Settings are read at import time, so the test environment is fixed first
os.environ["DATABASE_URL"] = ""
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["AUTH_JWT_KEY"] = ""
os.environ["CLOUDINARY_CLOUD_NAME"] = "demo"
os.environ.setdefault("CLOUDINARY_API_KEY", "test-key")
os.environ.setdefault("CLOUDINARY_API_SECRET", "test-secret")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from gallery.database import SQLITE_MEMORY_URL, Base, build_engine_args, get_db
import gallery.models  # noqa: F401
from gallery.main import app
from gallery.services.storage_service import get_storage

STORE_BASE_URL = "https://res.cloudinary.com/demo/image/upload/v1"


class FakeStorage:
    """In-memory stand-in for CloudinaryStorage recording every call."""

    cloud_name = "demo"

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.deleted: List[str] = []
        self.delete_result = True
        self.delete_error = None
        self.fail_paths: Dict[str, Exception] = {}

    def validate_config(self) -> bool:
        return True

    async def upload_to_store(self, data: bytes, path: str, content_type: str) -> str:
        for prefix, error in self.fail_paths.items():
            if path.startswith(prefix):
                raise error
        self.objects[path] = data
        self.content_types[path] = content_type
        return f"{STORE_BASE_URL}/{path}"

    async def delete_by_file_id(self, file_id: str) -> bool:
        self.deleted.append(file_id)
        if self.delete_error is not None:
            raise self.delete_error
        if self.delete_result:
            for path in [p for p in self.objects if os.path.basename(p).startswith(file_id)]:
                del self.objects[path]
        return self.delete_result

    async def close(self):
        pass


def make_image_bytes(size=(800, 600), fmt="JPEG", mode="RGB", color=(200, 80, 40), **save_kwargs) -> bytes:
    image = Image.new(mode, size, color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


@pytest.fixture
def image_bytes():
    return make_image_bytes


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest_asyncio.fixture
async def engine():
    test_engine = create_async_engine(SQLITE_MEMORY_URL, **build_engine_args(SQLITE_MEMORY_URL))
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory, fake_storage):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: fake_storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
