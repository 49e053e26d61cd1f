"""In-process metadata store, used by tests and single-process demos."""

import threading
from datetime import datetime

from api.files.dto.file import FileRecord
from errors import DuplicateTokenError


class InMemoryFilesRepository:
    def __init__(self):
        self._records: dict[str, FileRecord] = {}
        self._lock = threading.Lock()

    def create(self, record: FileRecord) -> FileRecord:
        with self._lock:
            if record.token in self._records:
                raise DuplicateTokenError(f"Token already exists: {record.token[:6]}…")
            self._records[record.token] = record
        return record

    def get(self, token: str) -> FileRecord | None:
        with self._lock:
            return self._records.get(token)

    def exists(self, token: str) -> bool:
        with self._lock:
            return token in self._records

    def try_consume(self, token: str) -> int | None:
        with self._lock:
            record = self._records.get(token)
            if record is None or record.download_count >= record.config.max_downloads:
                return None
            count = record.download_count + 1
            self._records[token] = record.model_copy(update={"download_count": count})
            return count

    def delete(self, token: str) -> bool:
        with self._lock:
            return self._records.pop(token, None) is not None

    def list_expired(self, now: datetime) -> list[FileRecord]:
        with self._lock:
            return [r for r in self._records.values() if r.expires_at < now]
