from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from api.files.repositories.files_repository import SqlFilesRepository
from api.files.repositories.memory_repository import InMemoryFilesRepository
from conftest import START, make_record
from database import init_db, make_engine
from errors import DuplicateTokenError, StoreError


@pytest.fixture(params=["sql", "memory"])
def repo(request, tmp_path):
    if request.param == "memory":
        yield InMemoryFilesRepository()
        return
    engine = make_engine(f"sqlite:///{tmp_path}/links.db")
    init_db(bind=engine)
    yield SqlFilesRepository(sessionmaker(bind=engine))
    engine.dispose()


def test_create_and_get(repo):
    record = make_record(ip_restriction="10.0.0.0/8", max_file_size=1024)
    repo.create(record)

    loaded = repo.get("tok123")
    assert loaded == record
    assert loaded.created_at.tzinfo is not None
    assert loaded.expires_at == START + timedelta(minutes=60)
    assert repo.exists("tok123")
    assert not repo.exists("other")
    assert repo.get("other") is None


def test_duplicate_token_is_rejected(repo):
    repo.create(make_record())
    with pytest.raises(DuplicateTokenError):
        repo.create(make_record(file_name="b.txt"))


def test_try_consume_stops_at_max_downloads(repo):
    repo.create(make_record(max_downloads=2))

    assert repo.try_consume("tok123") == 1
    assert repo.try_consume("tok123") == 2
    assert repo.try_consume("tok123") is None
    assert repo.get("tok123").download_count == 2


def test_try_consume_unknown_token(repo):
    assert repo.try_consume("missing") is None


def test_delete_is_idempotent(repo):
    repo.create(make_record())

    assert repo.delete("tok123")
    assert not repo.delete("tok123")
    assert repo.get("tok123") is None


def test_list_expired(repo):
    repo.create(make_record(token="old", expiration_minutes=5))
    repo.create(make_record(token="new", expiration_minutes=120))

    expired = repo.list_expired(START + timedelta(minutes=30))

    assert [r.token for r in expired] == ["old"]
    assert repo.list_expired(START + timedelta(minutes=5)) == []


def test_sql_errors_become_store_errors(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path}/empty.db")
    # No tables created
    repo = SqlFilesRepository(sessionmaker(bind=engine))

    with pytest.raises(StoreError):
        repo.get("tok123")
    with pytest.raises(StoreError):
        repo.try_consume("tok123")
    engine.dispose()
