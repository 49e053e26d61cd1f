"""HMAC-signed, time-limited blob URLs."""

import hashlib
import hmac
import secrets
import time
from urllib.parse import quote, urlencode

BLOB_URL_PREFIX = "/blobs"


def _signature(secret: str, key: str, expires: int) -> str:
    msg = f"{key}|{expires}".encode()
    return hmac.new(secret.encode(), msg, hashlib.sha256).hexdigest()


def signed_url(secret: str, key: str, ttl_seconds: int, now: float | None = None) -> str:
    """Build ``/blobs/<token>/<file>?expires=…&signature=…`` valid for ``ttl_seconds``."""
    expires = int((now if now is not None else time.time()) + ttl_seconds)
    query = urlencode({"expires": expires, "signature": _signature(secret, key, expires)})
    return f"{BLOB_URL_PREFIX}/{quote(key)}?{query}"


def verify(secret: str, key: str, expires: int, signature: str, now: float | None = None) -> bool:
    if (now if now is not None else time.time()) > expires:
        return False
    # compare_digest rejects non-ASCII str
    return secrets.compare_digest(signature.encode(), _signature(secret, key, expires).encode())
