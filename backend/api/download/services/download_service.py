"""Download service — the link redemption engine.

Every route that hands out file bytes goes through ``RedemptionEngine.redeem``.
One redemption walks LOOKUP → EXPIRY_CHECK → IP_CHECK → QUOTA_CHECK → SERVE and
stops at the first denial. Only SERVE mutates the download counter, through a
single conditional update in the metadata store.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from api.blobs.repositories.blob_repository import BlobRepository, blob_key
from api.download.dto.download import Outcome, Redemption, RetrievalHandle
from api.files.dto.file import FileRecord
from api.files.repositories.files_repository import FilesRepository
from api.files.services.files_service import remove_record, short_token, utcnow
from config import SIGNED_URL_TTL_SECONDS
from errors import BlobNotFoundError, StoreError
from stores import call_store

logger = logging.getLogger(__name__)


class RedemptionEngine:
    def __init__(
        self,
        files: FilesRepository,
        blobs: BlobRepository,
        clock: Callable[[], datetime] = utcnow,
        url_ttl_seconds: int = SIGNED_URL_TTL_SECONDS,
        timeout: float | None = None,
    ):
        self.files = files
        self.blobs = blobs
        self.clock = clock
        self.url_ttl_seconds = url_ttl_seconds
        self.timeout = timeout

    async def _call(self, fn, *args):
        return await call_store(fn, *args, timeout=self.timeout)

    async def redeem(
        self,
        token: str,
        origin: str | None = None,
        file_name: str | None = None,
    ) -> Redemption:
        """Validate one download attempt for ``token`` and, if allowed, serve it.

        ``origin`` is the requesting IP address, checked against the link's IP
        restriction. ``file_name``, when given, must match the stored name.
        Raises ``StoreError`` (or ``StoreTimeoutError``) on infrastructure
        failure; every other result is a ``Redemption``.
        """
        # LOOKUP
        record = await self._call(self.files.get, token)
        if record is None or (file_name is not None and file_name != record.file_name):
            logger.info("Redeem %s: not found", short_token(token))
            return Redemption(Outcome.NOT_FOUND)

        # EXPIRY_CHECK
        if record.is_expired(self.clock()):
            logger.info("Redeem %s: expired, reclaiming", short_token(token))
            await self._reclaim(record)
            return Redemption(Outcome.EXPIRED, record)

        # IP_CHECK
        if not record.config.allows(origin):
            logger.info("Redeem %s: origin %s not allowed", short_token(token), origin)
            return Redemption(Outcome.FORBIDDEN, record)

        # QUOTA_CHECK
        if record.download_count >= record.config.max_downloads:
            logger.info("Redeem %s: download limit reached", short_token(token))
            return Redemption(Outcome.QUOTA_EXCEEDED, record)

        key = blob_key(record.token, record.file_name)
        if not await self._call(self.blobs.exists, key):
            raise BlobNotFoundError(f"Blob missing for link {short_token(token)}")

        # SERVE: the conditional increment decides, the check above is only a shortcut
        count = await self._call(self.files.try_consume, token)
        if count is None:
            logger.info("Redeem %s: lost the race for the last download", short_token(token))
            return Redemption(Outcome.QUOTA_EXCEEDED, record)

        served = record.model_copy(update={"download_count": count})
        logger.info(
            "Redeem %s: served (%d/%d)",
            short_token(token), served.download_count, served.config.max_downloads,
        )
        return Redemption(Outcome.SERVED, served, self._handle(served, key))

    def _handle(self, record: FileRecord, key: str) -> RetrievalHandle:
        return RetrievalHandle(
            key=key,
            file_name=record.file_name,
            mime_type=record.mime_type,
            size=record.file_size,
            url=self.blobs.signed_url(key, self.url_ttl_seconds),
            _opener=self.blobs.open,
        )

    async def _reclaim(self, record: FileRecord) -> None:
        try:
            await self._call(remove_record, self.files, self.blobs, record)
        except StoreError as e:
            # The record stays dead: the next access or the sweep retries
            logger.error("Failed to reclaim expired link %s: %s", short_token(record.token), e)
