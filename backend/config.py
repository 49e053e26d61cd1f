"""Application configuration."""

import os
import secrets
from pathlib import Path

DATA_DIR = Path(os.environ.get("DATA_DIR", str(Path(__file__).parent.parent / "data")))
DATA_DIR.mkdir(parents=True, exist_ok=True)

BLOBS_DIR = Path(os.environ.get("BLOBS_DIR", str(DATA_DIR / "blobs")))
BLOBS_DIR.mkdir(parents=True, exist_ok=True)

DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{DATA_DIR}/links.db")

# Store calls (metadata + blob) are bounded by this timeout
STORE_TIMEOUT_SECONDS = float(os.environ.get("STORE_TIMEOUT_SECONDS", "10"))

# Signed blob URLs
SIGNED_URL_TTL_SECONDS = int(os.environ.get("SIGNED_URL_TTL_SECONDS", "300"))
SIGNING_SECRET = os.environ.get("SIGNING_SECRET", "").strip()
SIGNING_SECRET_GENERATED = not SIGNING_SECRET
if SIGNING_SECRET_GENERATED:
    SIGNING_SECRET = secrets.token_hex(32)

# Upload limits
MAX_UPLOAD_BYTES = int(os.environ.get("MAX_UPLOAD_BYTES", str(100 * 1024**2)))
MAX_EXPIRATION_MINUTES = int(os.environ.get("MAX_EXPIRATION_MINUTES", str(7 * 24 * 60)))
DEFAULT_EXPIRATION_MINUTES = int(os.environ.get("DEFAULT_EXPIRATION_MINUTES", "1440"))
DEFAULT_MAX_DOWNLOADS = int(os.environ.get("DEFAULT_MAX_DOWNLOADS", "1"))

# Use the first X-Forwarded-For entry as the request origin (behind a reverse proxy)
TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "").strip().lower() in ("1", "true", "yes")

# Background sweep of expired links; 0 disables it
CLEANUP_INTERVAL_SECONDS = int(os.environ.get("CLEANUP_INTERVAL_SECONDS", str(12 * 3600)))
# Blobs without a record are only treated as orphans after this long
ORPHAN_GRACE_SECONDS = int(os.environ.get("ORPHAN_GRACE_SECONDS", "3600"))

CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
