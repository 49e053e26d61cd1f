"""Upload Data Transfer Objects."""

from datetime import datetime

from pydantic import BaseModel


class UploadResponse(BaseModel):
    token: str
    url: str
    file_name: str
    size: int
    mime_type: str
    expires_at: datetime
    max_downloads: int
