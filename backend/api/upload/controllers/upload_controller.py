"""Upload controller — issues links via multipart POST or streaming PUT."""

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from pydantic import ValidationError

from api.files.dto.file import LinkConfig
from api.upload.dto.upload import UploadResponse
from api.upload.services import upload_service
from api.upload.services.upload_service import LinkIssuer
from config import DEFAULT_EXPIRATION_MINUTES, DEFAULT_MAX_DOWNLOADS, MAX_UPLOAD_BYTES
from dependencies import get_issuer
from errors import FileTooLargeError, LinkValidationError

router = APIRouter(tags=["Upload"])

CHUNK_SIZE = 1024 * 1024  # 1MB


def _build_config(
    expiration_minutes: int | None,
    max_downloads: int | None,
    ip_restriction: str | None,
    max_file_size: int | None,
) -> LinkConfig:
    # Checked before the body is read, so the read loop never buffers past the server cap
    if max_file_size is not None and max_file_size > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=400,
            detail=f"max_file_size cannot exceed {MAX_UPLOAD_BYTES} bytes",
        )
    try:
        return LinkConfig(
            expiration_minutes=DEFAULT_EXPIRATION_MINUTES if expiration_minutes is None else expiration_minutes,
            max_downloads=DEFAULT_MAX_DOWNLOADS if max_downloads is None else max_downloads,
            ip_restriction=ip_restriction,
            max_file_size=MAX_UPLOAD_BYTES if max_file_size is None else max_file_size,
        )
    except ValidationError as e:
        errors = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        raise HTTPException(status_code=400, detail=f"Invalid link configuration: {errors}")


async def _issue(
    request: Request,
    issuer: LinkIssuer,
    data: bytes,
    file_name: str,
    mime_type: str | None,
    config: LinkConfig,
) -> UploadResponse:
    try:
        record = await issuer.issue_record(data, file_name, mime_type, config)
    except FileTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except LinkValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    base_url = str(request.base_url).rstrip("/")
    return UploadResponse(
        token=record.token,
        url=f"{base_url}/{record.token}",
        file_name=record.file_name,
        size=record.file_size,
        mime_type=record.mime_type,
        expires_at=record.expires_at,
        max_downloads=record.config.max_downloads,
    )


@router.post("/api/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_form(
    request: Request,
    file: UploadFile = File(...),
    expiration_minutes: int | None = Form(None),
    max_downloads: int | None = Form(None),
    ip_restriction: str | None = Form(None),
    max_file_size: int | None = Form(None),
    issuer: LinkIssuer = Depends(get_issuer),
):
    """Upload a file from a form and issue a download link."""
    config = _build_config(expiration_minutes, max_downloads, ip_restriction, max_file_size)

    data = bytearray()
    while chunk := await file.read(CHUNK_SIZE):
        data.extend(chunk)
        if len(data) > config.max_file_size:
            raise HTTPException(
                status_code=413,
                detail=f"File exceeds max size of {config.max_file_size} bytes",
            )

    return await _issue(request, issuer, bytes(data), file.filename, file.content_type, config)


@router.put("/{filename}", response_model=UploadResponse)
async def upload_raw(request: Request, filename: str, issuer: LinkIssuer = Depends(get_issuer)):
    """Upload a file via streaming PUT request; link policy comes from headers."""
    expires = request.headers.get("X-Expiration-Minutes")
    expiration_minutes = upload_service.parse_expiry(expires) if expires else None
    if expires and expiration_minutes is None:
        raise HTTPException(status_code=400, detail=f"Invalid X-Expiration-Minutes: {expires}")

    max_downloads_str = request.headers.get("X-Max-Downloads")
    if max_downloads_str and not max_downloads_str.strip().isdigit():
        raise HTTPException(status_code=400, detail=f"Invalid X-Max-Downloads: {max_downloads_str}")
    max_downloads = int(max_downloads_str) if max_downloads_str else None

    size_str = request.headers.get("X-Max-File-Size")
    max_file_size = upload_service.parse_size(size_str) if size_str else None
    if size_str and max_file_size is None:
        raise HTTPException(status_code=400, detail=f"Invalid X-Max-File-Size: {size_str}")

    config = _build_config(
        expiration_minutes,
        max_downloads,
        request.headers.get("X-IP-Restriction"),
        max_file_size,
    )

    data = bytearray()
    async for chunk in request.stream():
        data.extend(chunk)
        if len(data) > config.max_file_size:
            raise HTTPException(
                status_code=413,
                detail=f"File exceeds max size of {config.max_file_size} bytes",
            )

    return await _issue(
        request, issuer, bytes(data), filename, request.headers.get("Content-Type"), config,
    )
