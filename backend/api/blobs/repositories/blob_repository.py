"""Blob repository — raw file bytes addressed by ``<token>/<file name>``.

Blobs are written once at issuance and never modified, only deleted.
"""

import os
import shutil
import tempfile
import threading
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Protocol

from api.blobs.services import signing
from errors import BlobNotFoundError, StoreError

CHUNK_SIZE = 1024 * 1024  # 1MB


def blob_key(token: str, file_name: str) -> str:
    return f"{token}/{file_name}"


def split_key(key: str) -> tuple[str, str]:
    token, _, file_name = key.partition("/")
    if not token or not file_name or "/" in file_name:
        raise ValueError(f"Malformed blob key: {key!r}")
    return token, file_name


class BlobRepository(Protocol):
    def put(self, key: str, data: bytes) -> None: ...

    def open(self, key: str) -> Iterator[bytes]: ...

    def read(self, key: str) -> bytes: ...

    def exists(self, key: str) -> bool: ...

    def delete(self, key: str) -> None:
        """Remove a blob. Deleting a missing blob is a no-op."""
        ...

    def delete_token(self, token: str) -> None: ...

    def list_tokens(self, older_than: float = 0) -> list[str]:
        """Tokens with stored blobs, written at least ``older_than`` seconds ago."""
        ...

    def signed_url(self, key: str, ttl_seconds: int) -> str: ...

    def verify_signature(self, key: str, expires: int, signature: str) -> bool: ...


class LocalBlobRepository:
    """Blobs on the local filesystem under ``<root>/<token>/<file name>``."""

    def __init__(self, root: Path, secret: str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._secret = secret

    def _path(self, key: str) -> Path:
        token, file_name = split_key(key)
        path = (self.root / token / file_name).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Blob key escapes storage root: {key!r}")
        return path

    def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a temp file, then move into place
            tmp = tempfile.NamedTemporaryFile(delete=False, dir=str(path.parent))
            try:
                with tmp:
                    tmp.write(data)
                shutil.move(tmp.name, str(path))
            except BaseException:
                if os.path.exists(tmp.name):
                    os.unlink(tmp.name)
                raise
        except OSError as e:
            raise StoreError(f"Failed to write blob: {e}") from e

    def open(self, key: str) -> Iterator[bytes]:
        path = self._path(key)
        if not path.is_file():
            raise BlobNotFoundError(f"Blob not found: {key}")

        def iterfile():
            with open(path, "rb") as f:
                while chunk := f.read(CHUNK_SIZE):
                    yield chunk

        return iterfile()

    def read(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"Blob not found: {key}") from e
        except OSError as e:
            raise StoreError(f"Failed to read blob: {e}") from e

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
            # Remove the token directory once it is empty
            if path.parent.exists() and not any(path.parent.iterdir()):
                path.parent.rmdir()
        except OSError as e:
            raise StoreError(f"Failed to delete blob: {e}") from e

    def delete_token(self, token: str) -> None:
        """Remove everything stored under ``token`` (orphan cleanup)."""
        directory = self.root / token
        if directory.is_dir():
            shutil.rmtree(directory, ignore_errors=True)

    def list_tokens(self, older_than: float = 0) -> list[str]:
        if not self.root.exists():
            return []
        cutoff = time.time() - older_than
        return [
            entry.name
            for entry in self.root.iterdir()
            if entry.is_dir() and entry.stat().st_mtime <= cutoff
        ]

    def signed_url(self, key: str, ttl_seconds: int) -> str:
        return signing.signed_url(self._secret, key, ttl_seconds)

    def verify_signature(self, key: str, expires: int, signature: str) -> bool:
        return signing.verify(self._secret, key, expires, signature)


class InMemoryBlobRepository:
    """Blobs in a dict, used by tests."""

    def __init__(self, secret: str = "test-secret"):
        self._blobs: dict[str, bytes] = {}
        self._written: dict[str, float] = {}
        self._lock = threading.Lock()
        self._secret = secret

    def put(self, key: str, data: bytes) -> None:
        split_key(key)
        with self._lock:
            self._blobs[key] = bytes(data)
            self._written[key] = time.time()

    def open(self, key: str) -> Iterator[bytes]:
        data = self.read(key)
        return iter([data[i:i + CHUNK_SIZE] for i in range(0, len(data), CHUNK_SIZE)] or [b""])

    def read(self, key: str) -> bytes:
        with self._lock:
            try:
                return self._blobs[key]
            except KeyError as e:
                raise BlobNotFoundError(f"Blob not found: {key}") from e

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._blobs

    def delete(self, key: str) -> None:
        with self._lock:
            self._blobs.pop(key, None)
            self._written.pop(key, None)

    def delete_token(self, token: str) -> None:
        with self._lock:
            for key in [k for k in self._blobs if k.startswith(f"{token}/")]:
                del self._blobs[key]
                del self._written[key]

    def list_tokens(self, older_than: float = 0) -> list[str]:
        cutoff = time.time() - older_than
        with self._lock:
            return sorted({split_key(k)[0] for k, written in self._written.items() if written <= cutoff})

    def signed_url(self, key: str, ttl_seconds: int) -> str:
        return signing.signed_url(self._secret, key, ttl_seconds)

    def verify_signature(self, key: str, expires: int, signature: str) -> bool:
        return signing.verify(self._secret, key, expires, signature)
