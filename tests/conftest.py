# tests/conftest.py
import os

# Set up test environment variables BEFORE any other imports
os.environ.setdefault("TESTING", "true")
default_test_url = "sqlite+aiosqlite:///./test.db"
os.environ.setdefault("TEST_DATABASE_URL", default_test_url)
os.environ.setdefault("DATABASE_URL", os.environ.get("TEST_DATABASE_URL", default_test_url))
os.environ.setdefault("ENVIRONMENT", "testing")

from collections.abc import AsyncIterator
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.dependencies import get_blob_store
from app.database import build_engine, get_db
from app.domains.namespace.repository import MetadataStore
from app.domains.namespace.service import NamespaceService
from app.exceptions.storage import StoreUnavailableError
from app.main import app
from app.services.blob_store import BlobStore
from models import Base, FileRecord, Folder, generate_id, utcnow

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", default_test_url)


async def iter_bytes(data: bytes, chunk_size: int = 4) -> AsyncIterator[bytes]:
    """Feed ``data`` to an upload in small chunks."""
    for start in range(0, len(data), chunk_size):
        yield data[start:start + chunk_size]


class InMemoryMetadataStore:
    """Dictionary-backed stand-in for MetadataStore.

    Method names listed in ``fail_on`` raise StoreUnavailableError.
    """

    def __init__(self):
        self.folders: dict[str, Folder] = {}
        self.files: dict[str, FileRecord] = {}
        self.fail_on: set[str] = set()

    def _check(self, method: str):
        if method in self.fail_on:
            raise StoreUnavailableError(f"Injected failure in {method}")

    async def get_folder(self, folder_id):
        self._check("get_folder")
        return self.folders.get(folder_id)

    async def list_folders(self, parent_id):
        self._check("list_folders")
        children = [f for f in self.folders.values() if f.parent_id == parent_id]
        return sorted(children, key=lambda f: f.name)

    async def insert_folder(self, folder):
        self._check("insert_folder")
        self.folders[folder.id] = folder
        return folder

    async def rename_folder(self, folder_id, name):
        self._check("rename_folder")
        if folder_id not in self.folders:
            return False
        self.folders[folder_id].name = name
        return True

    async def delete_folder(self, folder_id):
        self._check("delete_folder")
        return self.folders.pop(folder_id, None) is not None

    async def get_file(self, file_id):
        self._check("get_file")
        return self.files.get(file_id)

    async def list_files(self, folder_id):
        self._check("list_files")
        records = [r for r in self.files.values() if r.folder_id == folder_id]
        return sorted(records, key=lambda r: r.upload_date, reverse=True)

    async def list_all_files(self):
        self._check("list_all_files")
        return sorted(self.files.values(), key=lambda r: r.upload_date, reverse=True)

    async def insert_file(self, record):
        self._check("insert_file")
        # Keep upload dates strictly increasing so ordering is deterministic.
        if self.files:
            latest = max(r.upload_date for r in self.files.values())
            if record.upload_date <= latest:
                record.upload_date = latest + timedelta(microseconds=1)
        self.files[record.id] = record
        return record

    async def rename_file(self, file_id, original_name):
        self._check("rename_file")
        if file_id not in self.files:
            return False
        self.files[file_id].original_name = original_name
        return True

    async def delete_file(self, file_id):
        self._check("delete_file")
        return self.files.pop(file_id, None) is not None

    async def delete_files_in_folder(self, folder_id):
        self._check("delete_files_in_folder")
        doomed = [r.id for r in self.files.values() if r.folder_id == folder_id]
        for file_id in doomed:
            del self.files[file_id]
        return len(doomed)

    async def count_files(self):
        self._check("count_files")
        return len(self.files)

    async def total_size(self):
        self._check("total_size")
        return sum(r.size for r in self.files.values())

    async def ping(self):
        self._check("ping")


@pytest_asyncio.fixture
async def test_db():
    """Create a test database session."""
    engine = build_engine(TEST_DATABASE_URL)
    TestSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

    # Clean up - drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def chunked():
    """Helper turning bytes into an async chunk iterator."""
    return iter_bytes


@pytest.fixture
def blob_store(tmp_path) -> BlobStore:
    """Blob store rooted in a per-test directory."""
    return BlobStore(tmp_path / "blobs", chunk_size=8)


@pytest.fixture
def metadata_store(test_db) -> MetadataStore:
    return MetadataStore(test_db)


@pytest.fixture
def namespace_service(metadata_store, blob_store) -> NamespaceService:
    return NamespaceService(metadata_store, blob_store, max_upload_size=1024)


@pytest.fixture
def memory_store() -> InMemoryMetadataStore:
    return InMemoryMetadataStore()


@pytest.fixture
def memory_service(memory_store, blob_store) -> NamespaceService:
    """Service over the in-memory metadata store and a real blob directory."""
    return NamespaceService(memory_store, blob_store, max_upload_size=1024)


@pytest_asyncio.fixture
async def client(test_db, blob_store):
    """Create a test client with database and blob store overrides."""
    app.dependency_overrides[get_db] = lambda: test_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# Namespace fixtures
@pytest_asyncio.fixture
async def test_folder(test_db):
    """Create a folder at the root."""
    folder = Folder(id=generate_id(), name="Documents", parent_id=None, created_at=utcnow())
    test_db.add(folder)
    await test_db.commit()
    await test_db.refresh(folder)
    return folder


@pytest_asyncio.fixture
async def test_subfolder(test_db, test_folder):
    """Create a folder inside ``test_folder``."""
    folder = Folder(
        id=generate_id(), name="Invoices", parent_id=test_folder.id, created_at=utcnow()
    )
    test_db.add(folder)
    await test_db.commit()
    await test_db.refresh(folder)
    return folder


@pytest_asyncio.fixture
async def test_file(namespace_service, test_folder):
    """Upload a ten byte text file into ``test_folder``."""
    return await namespace_service.upload_file(
        iter_bytes(b"0123456789"),
        original_name="A.txt",
        mime_type="text/plain",
        folder_id=test_folder.id,
    )
