import asyncio
import os
import tempfile
from datetime import datetime, timedelta, timezone

# config.py creates its data directories on import
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="drop-links-tests-"))
os.environ.setdefault("SIGNING_SECRET", "test-signing-secret")
os.environ.setdefault("CLEANUP_INTERVAL_SECONDS", "0")

import pytest  # noqa: E402

from api.blobs.repositories.blob_repository import InMemoryBlobRepository, blob_key  # noqa: E402
from api.download.services.download_service import RedemptionEngine  # noqa: E402
from api.files.dto.file import FileRecord, LinkConfig  # noqa: E402
from api.files.repositories.memory_repository import InMemoryFilesRepository  # noqa: E402
from api.upload.services.upload_service import LinkIssuer  # noqa: E402

START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def run(coro):
    return asyncio.run(coro)


def make_record(
    token="tok123",
    file_name="a.txt",
    data=b"hello",
    created_at=START,
    download_count=0,
    **config,
) -> FileRecord:
    config.setdefault("expiration_minutes", 60)
    config.setdefault("max_downloads", 3)
    return FileRecord(
        token=token,
        file_name=file_name,
        file_size=len(data),
        mime_type="text/plain",
        config=LinkConfig(**config),
        created_at=created_at,
        download_count=download_count,
    )


def store_record(files, blobs, record: FileRecord, data=b"hello") -> FileRecord:
    blobs.put(blob_key(record.token, record.file_name), data)
    files.create(record)
    return record


@pytest.fixture
def files():
    return InMemoryFilesRepository()


@pytest.fixture
def blobs():
    return InMemoryBlobRepository(secret="test-signing-secret")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def issuer(files, blobs, clock):
    return LinkIssuer(files, blobs, clock=clock)


@pytest.fixture
def engine(files, blobs, clock):
    return RedemptionEngine(files, blobs, clock=clock)


@pytest.fixture
def client(files, blobs):
    from fastapi.testclient import TestClient

    import dependencies
    from main import app

    app.dependency_overrides[dependencies.get_files_repository] = lambda: files
    app.dependency_overrides[dependencies.get_blob_repository] = lambda: blobs
    yield TestClient(app)
    app.dependency_overrides.clear()
