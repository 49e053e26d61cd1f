"""Download controller — redeems links."""

from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse, StreamingResponse

from api.download.dto.download import Outcome, Redemption
from api.download.services.download_service import RedemptionEngine
from config import TRUST_PROXY_HEADERS
from dependencies import get_engine

router = APIRouter(tags=["Download"])

DENIAL_STATUS = {
    Outcome.NOT_FOUND: 404,
    Outcome.EXPIRED: 410,
    Outcome.FORBIDDEN: 403,
    Outcome.QUOTA_EXCEEDED: 410,
}


def request_origin(request: Request) -> str | None:
    if TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


def content_disposition(filename: str) -> str:
    ascii_name = "".join(
        c for c in filename.encode("ascii", "ignore").decode() if c.isprintable() and c not in '"\\'
    ) or "download"
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


async def _redeem(
    request: Request,
    engine: RedemptionEngine,
    token: str,
    filename: str | None,
    redirect: bool,
):
    result: Redemption = await engine.redeem(token, origin=request_origin(request), file_name=filename)

    if not result.served:
        raise HTTPException(
            status_code=DENIAL_STATUS[result.outcome],
            detail={"reason": result.outcome.value, "message": result.message},
        )

    handle = result.handle
    if redirect:
        return RedirectResponse(url=handle.url, status_code=302)

    return StreamingResponse(
        handle.open(),
        media_type=handle.mime_type,
        headers={
            "Content-Disposition": content_disposition(handle.file_name),
            "Content-Length": str(handle.size),
        },
    )


@router.get("/{token}")
async def download(
    request: Request,
    token: str,
    redirect: bool = False,
    engine: RedemptionEngine = Depends(get_engine),
):
    """Redeem a link and stream the file (or redirect to a signed blob URL)."""
    return await _redeem(request, engine, token, None, redirect)


@router.get("/{token}/{filename}")
async def download_named(
    request: Request,
    token: str,
    filename: str,
    redirect: bool = False,
    engine: RedemptionEngine = Depends(get_engine),
):
    """Same as ``/{token}``; the file name must match the uploaded one."""
    return await _redeem(request, engine, token, filename, redirect)
