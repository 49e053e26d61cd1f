"""Cleanup — removes expired links and orphaned blobs.

Run standalone: python cleanup.py
Also runs periodically inside the app (CLEANUP_INTERVAL_SECONDS).
"""

import asyncio
import logging
from datetime import datetime

from starlette.concurrency import run_in_threadpool

from api.blobs.repositories.blob_repository import BlobRepository
from api.files.repositories.files_repository import FilesRepository
from api.files.services.files_service import remove_record, short_token, utcnow
from config import ORPHAN_GRACE_SECONDS
from errors import StoreError

logger = logging.getLogger(__name__)


def run_cleanup(
    files: FilesRepository | None = None,
    blobs: BlobRepository | None = None,
    now: datetime | None = None,
    orphan_grace_seconds: float = ORPHAN_GRACE_SECONDS,
) -> int:
    """Delete expired links and blob directories with no link record.

    Links that used up their downloads are kept until they expire, so the
    download route keeps telling people the limit was reached.
    Returns the number of links removed.
    """
    if files is None or blobs is None:
        import dependencies

        files = files or dependencies.files_repository
        blobs = blobs or dependencies.blob_repository
    now = now or utcnow()
    count = 0

    # Expired links
    for record in files.list_expired(now):
        if remove_record(files, blobs, record):
            count += 1

    # Orphaned blobs (in storage but not in the DB), including ones left dangling above.
    # Blobs younger than the grace period may belong to an upload still in progress.
    for token in blobs.list_tokens(older_than=orphan_grace_seconds):
        if not files.exists(token):
            logger.info("Removing orphaned blob directory %s", short_token(token))
            blobs.delete_token(token)

    if count:
        logger.info("Cleanup removed %d expired link(s)", count)
    return count


async def cleanup_loop(interval_seconds: int) -> None:
    """Run ``run_cleanup`` every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await run_in_threadpool(run_cleanup)
        except (StoreError, OSError):
            logger.exception("Cleanup failed")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_cleanup()
