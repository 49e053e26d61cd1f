"""Blobs controller — serves signed, time-limited blob URLs.

These URLs are handed out by a successful redemption; serving them never
touches download counters.
"""

import mimetypes

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from api.blobs.repositories.blob_repository import BlobRepository, blob_key
from api.download.controllers.download_controller import content_disposition
from dependencies import get_blob_repository
from stores import call_store

router = APIRouter(prefix="/blobs", tags=["Blobs"])


@router.get("/{token}/{filename}")
async def get_blob(
    token: str,
    filename: str,
    expires: int,
    signature: str,
    blobs: BlobRepository = Depends(get_blob_repository),
):
    key = blob_key(token, filename)
    if not blobs.verify_signature(key, expires, signature):
        raise HTTPException(status_code=403, detail="Invalid or expired signature")
    if not await call_store(blobs.exists, key):
        raise HTTPException(status_code=404, detail="File not found")

    content_type, _ = mimetypes.guess_type(filename)
    return StreamingResponse(
        blobs.open(key),
        media_type=content_type or "application/octet-stream",
        headers={"Content-Disposition": content_disposition(filename)},
    )
