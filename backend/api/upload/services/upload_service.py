"""Upload service — issues download links for uploaded files."""

import logging
import mimetypes
import re
import secrets
import unicodedata
from collections.abc import Callable
from datetime import datetime

from api.blobs.repositories.blob_repository import BlobRepository, blob_key
from api.files.dto.file import FileRecord, LinkConfig
from api.files.repositories.files_repository import FilesRepository
from api.files.services.files_service import short_token, utcnow
from config import MAX_EXPIRATION_MINUTES, MAX_UPLOAD_BYTES
from errors import DuplicateTokenError, FileTooLargeError, LinkValidationError, StoreError
from stores import call_store

logger = logging.getLogger(__name__)

TOKEN_BYTES = 24  # 192 bits, 32 URL-safe characters
TOKEN_ATTEMPTS = 5
MAX_FILE_NAME_LENGTH = 255


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def parse_expiry(expiry_str: str) -> int | None:
    """Parse an expiry like '90', '30m', '2h', '3d' or '1w' into minutes."""
    if not expiry_str:
        return None

    match = re.match(r"^(\d+)([mhdw]?)$", expiry_str.strip().lower())
    if not match:
        return None

    value = int(match.group(1))
    unit = match.group(2) or "m"

    minutes = {
        "m": 1,
        "h": 60,
        "d": 60 * 24,
        "w": 60 * 24 * 7,
    }

    return value * minutes[unit]


def parse_size(size_str: str) -> int | None:
    """Parse size string like '100MB', '1GB' or a plain byte count into bytes."""
    if not size_str:
        return None

    match = re.match(r"^(\d+(?:\.\d+)?)\s*(B|KB|MB|GB|TB)?$", size_str.strip().upper())
    if not match:
        return None

    value = float(match.group(1))
    unit = match.group(2) or "B"

    multipliers = {
        "B": 1,
        "KB": 1024,
        "MB": 1024**2,
        "GB": 1024**3,
        "TB": 1024**4,
    }

    return int(value * multipliers[unit])


def validate_file_name(file_name: str | None) -> str:
    name = (file_name or "").strip()
    if not name:
        raise LinkValidationError("File name is required")
    if len(name) > MAX_FILE_NAME_LENGTH:
        raise LinkValidationError(f"File name is longer than {MAX_FILE_NAME_LENGTH} characters")
    if name in (".", "..") or any(c in name for c in ("/", "\\")):
        raise LinkValidationError(f"Invalid file name: {name!r}")
    if any(unicodedata.category(c).startswith("C") for c in name):
        raise LinkValidationError(f"File name contains control characters: {name!r}")
    return name


def guess_mime_type(file_name: str, mime_type: str | None = None) -> str:
    if mime_type and mime_type.strip():
        return mime_type.strip()
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or "application/octet-stream"


class LinkIssuer:
    """Stores a file and its link policy, and hands back the link token."""

    def __init__(
        self,
        files: FilesRepository,
        blobs: BlobRepository,
        clock: Callable[[], datetime] = utcnow,
        token_factory: Callable[[], str] = generate_token,
        timeout: float | None = None,
    ):
        self.files = files
        self.blobs = blobs
        self.clock = clock
        self.token_factory = token_factory
        self.timeout = timeout

    async def _call(self, fn, *args):
        return await call_store(fn, *args, timeout=self.timeout)

    async def issue(self, data: bytes, file_name: str, mime_type: str | None, config: LinkConfig) -> str:
        record = await self.issue_record(data, file_name, mime_type, config)
        return record.token

    async def issue_record(
        self,
        data: bytes,
        file_name: str,
        mime_type: str | None,
        config: LinkConfig,
    ) -> FileRecord:
        file_name = validate_file_name(file_name)
        if config.expiration_minutes > MAX_EXPIRATION_MINUTES:
            raise LinkValidationError(
                f"Links can live at most {MAX_EXPIRATION_MINUTES} minutes"
            )
        if config.max_file_size > MAX_UPLOAD_BYTES:
            raise LinkValidationError(
                f"max_file_size cannot exceed {MAX_UPLOAD_BYTES} bytes"
            )
        if len(data) > config.max_file_size:
            raise FileTooLargeError(
                f"File is {len(data)} bytes, the limit is {config.max_file_size} bytes"
            )

        token = await self._new_token()
        key = blob_key(token, file_name)

        # No metadata is written if the blob write fails
        await self._call(self.blobs.put, key, data)

        record = FileRecord(
            token=token,
            file_name=file_name,
            file_size=len(data),
            mime_type=guess_mime_type(file_name, mime_type),
            config=config,
            created_at=self.clock(),
            download_count=0,
        )
        try:
            await self._call(self.files.create, record)
        except StoreError:
            await self._discard_blob(key)
            raise

        logger.info(
            "Issued link %s for %s (%d bytes, %d min, %d downloads)",
            short_token(token), file_name, len(data),
            config.expiration_minutes, config.max_downloads,
        )
        return record

    async def _new_token(self) -> str:
        for _ in range(TOKEN_ATTEMPTS):
            token = self.token_factory()
            if not await self._call(self.files.exists, token):
                return token
        raise DuplicateTokenError("Could not generate a unique link token")

    async def _discard_blob(self, key: str) -> None:
        try:
            await self._call(self.blobs.delete, key)
        except StoreError as e:
            logger.error("Failed to roll back blob %s after metadata error: %s", short_token(key), e)
