"""
测试夹具：内存SQLite数据库、假的媒体存储与HTTP客户端
"""
import os

# 必须在导入应用之前设置，避免测试依赖PostgreSQL驱动
os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from typing import Dict, List, Optional, Set, Tuple

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import dropx.models  # noqa: F401  注册模型
from dropx.core.exceptions import UpstreamStorageError
from dropx.db.database import Base, get_db
from dropx.services.file_service import FileService
from dropx.services.media_store import MediaObject, MediaStore, get_media_store
from dropx.utils.auth import create_access_token
from main import app

OWNER = "user_alice"
OTHER = "user_bob"


class FakeMediaStore(MediaStore):
    """内存中的媒体存储，记录所有调用，并可按需模拟失败"""

    def __init__(self):
        self.objects: Dict[str, MediaObject] = {}
        self.uploads: List[Tuple[str, str, int]] = []
        self.lookups: List[str] = []
        self.deletes: List[str] = []
        self.fail_upload = False
        self.fail_lookup = False
        self.failing_names: Set[str] = set()
        self._counter = 0

    @property
    def call_count(self) -> int:
        return len(self.uploads) + len(self.lookups) + len(self.deletes)

    async def upload(self, *, content: bytes, file_name: str, folder: str) -> MediaObject:
        self.uploads.append((file_name, folder, len(content)))
        if self.fail_upload:
            raise UpstreamStorageError("Failed to upload file")

        self._counter += 1
        obj = MediaObject(
            file_id=f"ik_{self._counter}",
            name=file_name,
            file_path=f"{folder}/{file_name}",
            url=f"https://ik.imagekit.io/demo{folder}/{file_name}?updatedAt=1700000000",
            thumbnail_url=f"https://ik.imagekit.io/demo/tr:n-ik_ml_thumbnail{folder}/{file_name}",
            size=len(content),
        )
        self.objects[obj.file_id] = obj
        return obj

    async def find_by_name(self, name: str) -> Optional[MediaObject]:
        self.lookups.append(name)
        if self.fail_lookup:
            raise UpstreamStorageError("lookup unavailable")
        for obj in self.objects.values():
            if obj.name == name:
                return obj
        return None

    async def delete(self, file_id: str) -> None:
        self.deletes.append(file_id)
        obj = self.objects.get(file_id)
        name = obj.name if obj else file_id
        if name in self.failing_names or file_id in self.failing_names:
            raise UpstreamStorageError(f"cannot delete {name}")
        self.objects.pop(file_id, None)

    def get_authentication_parameters(self):
        return {"token": "test-token", "expire": 1700001800, "signature": "test-signature"}


def auth_headers(user_id: str = OWNER) -> Dict[str, str]:
    token = create_access_token({"sub": user_id})
    return {"Authorization": f"Bearer {token}"}


async def upload_image(db, store, owner=OWNER, name="beach.jpg", size=1024, mime="image/jpeg", parent_id=None):
    return await FileService.upload_file(db, store, owner, b"x" * size, name, mime, parent_id)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store():
    return FakeMediaStore()


@pytest.fixture
async def client(session_factory, store):
    """注入测试数据库与假媒体存储的HTTP客户端"""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_media_store] = lambda: store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()
