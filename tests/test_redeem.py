import pytest

from api.blobs.repositories.blob_repository import blob_key
from api.download.dto.download import Outcome
from api.download.services.download_service import RedemptionEngine
from api.files.repositories.memory_repository import InMemoryFilesRepository
from conftest import START, make_record, run, store_record
from errors import BlobNotFoundError, StoreError


def test_unknown_token_is_not_found(engine):
    result = run(engine.redeem("does-not-exist"))
    assert result.outcome is Outcome.NOT_FOUND
    assert result.handle is None


def test_served_returns_bytes_and_counts_once(engine, files, blobs):
    store_record(files, blobs, make_record(), b"payload")

    result = run(engine.redeem("tok123"))

    assert result.outcome is Outcome.SERVED
    assert b"".join(result.handle.open()) == b"payload"
    assert result.handle.file_name == "a.txt"
    assert result.handle.mime_type == "text/plain"
    assert result.handle.url.startswith("/blobs/tok123/a.txt?")
    assert result.record.download_count == 1
    assert files.get("tok123").download_count == 1


def test_file_name_must_match(engine, files, blobs):
    store_record(files, blobs, make_record())

    assert run(engine.redeem("tok123", file_name="b.txt")).outcome is Outcome.NOT_FOUND
    assert files.get("tok123").download_count == 0
    assert run(engine.redeem("tok123", file_name="a.txt")).outcome is Outcome.SERVED


def test_expired_link_is_reclaimed(engine, files, blobs, clock):
    store_record(files, blobs, make_record(expiration_minutes=10))
    clock.advance(minutes=10, seconds=1)

    result = run(engine.redeem("tok123"))

    assert result.outcome is Outcome.EXPIRED
    assert files.get("tok123") is None
    assert not blobs.exists(blob_key("tok123", "a.txt"))
    assert run(engine.redeem("tok123")).outcome is Outcome.NOT_FOUND


def test_link_is_alive_at_exact_expiry(engine, files, blobs, clock):
    store_record(files, blobs, make_record(expiration_minutes=10))
    clock.advance(minutes=10)

    assert run(engine.redeem("tok123")).outcome is Outcome.SERVED


def test_quota_exceeded_leaves_count_unchanged(engine, files, blobs):
    store_record(files, blobs, make_record(max_downloads=2, download_count=2))

    result = run(engine.redeem("tok123"))

    assert result.outcome is Outcome.QUOTA_EXCEEDED
    assert files.get("tok123").download_count == 2


def test_lost_race_is_quota_exceeded(engine, files, blobs, monkeypatch):
    store_record(files, blobs, make_record(max_downloads=1))
    # Another request took the last slot after our lookup
    monkeypatch.setattr(files, "try_consume", lambda token: None)

    assert run(engine.redeem("tok123")).outcome is Outcome.QUOTA_EXCEEDED


def test_ip_restriction_allows_matching_origin(engine, files, blobs):
    store_record(files, blobs, make_record(ip_restriction="10.0.0.0/24, 192.168.1.7"))

    assert run(engine.redeem("tok123", origin="10.0.0.42")).outcome is Outcome.SERVED
    assert run(engine.redeem("tok123", origin="192.168.1.7")).outcome is Outcome.SERVED


@pytest.mark.parametrize("origin", ["10.0.1.1", "192.168.1.8", None, "not-an-ip"])
def test_ip_restriction_forbids_other_origins(engine, files, blobs, origin):
    store_record(files, blobs, make_record(ip_restriction="10.0.0.0/24, 192.168.1.7"))

    result = run(engine.redeem("tok123", origin=origin))

    assert result.outcome is Outcome.FORBIDDEN
    assert files.get("tok123").download_count == 0


def test_expiry_is_checked_before_ip_restriction(engine, files, blobs, clock):
    store_record(files, blobs, make_record(ip_restriction="10.0.0.1", expiration_minutes=1))
    clock.advance(minutes=2)

    assert run(engine.redeem("tok123", origin="10.9.9.9")).outcome is Outcome.EXPIRED


def test_blob_delete_failure_still_removes_metadata(engine, files, blobs, clock, monkeypatch):
    store_record(files, blobs, make_record(expiration_minutes=1))
    clock.advance(minutes=5)

    def broken_delete(key):
        raise StoreError("bucket unavailable")

    monkeypatch.setattr(blobs, "delete", broken_delete)

    assert run(engine.redeem("tok123")).outcome is Outcome.EXPIRED
    assert files.get("tok123") is None
    # Left for the cleanup sweep
    assert blobs.exists(blob_key("tok123", "a.txt"))


def test_metadata_delete_failure_still_reports_expired(engine, files, blobs, clock, monkeypatch):
    store_record(files, blobs, make_record(expiration_minutes=1))
    clock.advance(minutes=5)

    def broken_delete(token):
        raise StoreError("database unavailable")

    monkeypatch.setattr(files, "delete", broken_delete)

    assert run(engine.redeem("tok123")).outcome is Outcome.EXPIRED


def test_missing_blob_is_an_infrastructure_error(engine, files):
    files.create(make_record())

    with pytest.raises(BlobNotFoundError):
        run(engine.redeem("tok123"))
    assert files.get("tok123").download_count == 0


def test_lookup_failure_propagates(engine, files, monkeypatch):
    def broken_get(token):
        raise StoreError("database unavailable")

    monkeypatch.setattr(files, "get", broken_get)

    with pytest.raises(StoreError):
        run(engine.redeem("tok123"))


def test_issue_then_redeem_until_quota(issuer, engine, files):
    from api.files.dto.file import LinkConfig

    token = run(issuer.issue(
        b"file bytes", "a.txt", "text/plain",
        LinkConfig(expiration_minutes=60, max_downloads=3),
    ))

    first = run(engine.redeem(token))
    assert first.outcome is Outcome.SERVED
    assert b"".join(first.handle.open()) == b"file bytes"
    assert files.get(token).download_count == 1

    assert run(engine.redeem(token)).outcome is Outcome.SERVED
    assert run(engine.redeem(token)).outcome is Outcome.SERVED
    assert run(engine.redeem(token)).outcome is Outcome.QUOTA_EXCEEDED
    assert files.get(token).download_count == 3


def test_naive_created_at_is_treated_as_utc(blobs, clock):
    files = InMemoryFilesRepository()
    record = make_record(created_at=START.replace(tzinfo=None), expiration_minutes=5)
    store_record(files, blobs, record)
    clock.advance(minutes=6)

    engine = RedemptionEngine(files, blobs, clock=clock)
    assert run(engine.redeem("tok123")).outcome is Outcome.EXPIRED
