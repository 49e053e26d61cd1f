"""Files service — metadata lookup and deletion of issued links."""

import logging
from datetime import datetime, timezone

from api.blobs.repositories.blob_repository import BlobRepository, blob_key
from api.files.dto.file import FileRecord, FileResponse
from api.files.repositories.files_repository import FilesRepository
from errors import StoreError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def short_token(token: str) -> str:
    """Token prefix safe to write to logs."""
    return f"{token[:6]}…"


def remove_record(files: FilesRepository, blobs: BlobRepository, record: FileRecord) -> bool:
    """Delete a record's blob, then the record itself.

    A failed blob delete is logged and left for the cleanup sweep; the metadata
    is removed regardless so no record points at a half-deleted blob. Returns
    whether a metadata row was removed (False if someone else got there first).
    """
    key = blob_key(record.token, record.file_name)
    try:
        blobs.delete(key)
    except StoreError as e:
        logger.warning("Dangling blob %s left for cleanup: %s", short_token(record.token), e)
    return files.delete(record.token)


def get_file(files: FilesRepository, token: str, now: datetime | None = None) -> FileResponse | None:
    record = files.get(token)
    if record is None or record.is_expired(now or utcnow()):
        return None
    return FileResponse.from_record(record)


def delete_file(files: FilesRepository, blobs: BlobRepository, token: str) -> bool:
    """Delete blob and metadata for ``token``. False if there was nothing to delete."""
    record = files.get(token)
    if record is None:
        return False
    deleted = remove_record(files, blobs, record)
    if deleted:
        logger.info("Deleted link %s", short_token(token))
    return deleted
