"""Store and service providers for the routers.

Tests swap implementations through ``app.dependency_overrides``.
"""

from fastapi import Depends

from api.blobs.repositories.blob_repository import BlobRepository, LocalBlobRepository
from api.download.services.download_service import RedemptionEngine
from api.files.repositories.files_repository import FilesRepository, SqlFilesRepository
from api.upload.services.upload_service import LinkIssuer
from config import BLOBS_DIR, SIGNING_SECRET
from database import SessionLocal

files_repository = SqlFilesRepository(SessionLocal)
blob_repository = LocalBlobRepository(BLOBS_DIR, SIGNING_SECRET)


def get_files_repository() -> FilesRepository:
    return files_repository


def get_blob_repository() -> BlobRepository:
    return blob_repository


def get_issuer(
    files: FilesRepository = Depends(get_files_repository),
    blobs: BlobRepository = Depends(get_blob_repository),
) -> LinkIssuer:
    return LinkIssuer(files, blobs)


def get_engine(
    files: FilesRepository = Depends(get_files_repository),
    blobs: BlobRepository = Depends(get_blob_repository),
) -> RedemptionEngine:
    return RedemptionEngine(files, blobs)
