"""Files controller — API routes for link metadata and deletion."""

from fastapi import APIRouter, Depends, HTTPException, status

from api.blobs.repositories.blob_repository import BlobRepository
from api.files.dto.file import FileResponse
from api.files.repositories.files_repository import FilesRepository
from api.files.services import files_service
from dependencies import get_blob_repository, get_files_repository
from stores import call_store

router = APIRouter(prefix="/api/files", tags=["Files"])


@router.get("/{token}", response_model=FileResponse)
async def get_file(token: str, files: FilesRepository = Depends(get_files_repository)):
    file = await call_store(files_service.get_file, files, token)
    if not file:
        raise HTTPException(status_code=404, detail="File not found")
    return file


@router.delete("/{token}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    token: str,
    files: FilesRepository = Depends(get_files_repository),
    blobs: BlobRepository = Depends(get_blob_repository),
):
    deleted = await call_store(files_service.delete_file, files, blobs, token)
    if not deleted:
        raise HTTPException(status_code=404, detail="File not found")
