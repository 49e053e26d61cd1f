"""Files repository — data access layer for link metadata.

``FilesRepository`` describes what the issuer, the redemption engine and the
cleanup sweep need from a metadata store. ``SqlFilesRepository`` is the
durable implementation; see ``memory_repository`` for the in-process one.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from api.files.dto.file import FileRecord, LinkConfig
from api.files.orm.file_model import FileModel
from errors import DuplicateTokenError, StoreError


class FilesRepository(Protocol):
    def create(self, record: FileRecord) -> FileRecord: ...

    def get(self, token: str) -> FileRecord | None: ...

    def exists(self, token: str) -> bool: ...

    def try_consume(self, token: str) -> int | None:
        """Increment download_count iff it is below max_downloads. Atomic.

        Returns the count after the increment, or None if nothing was consumed.
        """
        ...

    def delete(self, token: str) -> bool: ...

    def list_expired(self, now: datetime) -> list[FileRecord]: ...


def _model_to_record(model: FileModel) -> FileRecord:
    return FileRecord(
        token=model.token,
        file_name=model.file_name,
        file_size=model.file_size or 0,
        mime_type=model.mime_type,
        config=LinkConfig(
            expiration_minutes=model.expiration_minutes,
            max_downloads=model.max_downloads,
            ip_restriction=model.ip_restriction,
            max_file_size=model.max_file_size,
        ),
        created_at=model.created_at,
        download_count=model.download_count or 0,
    )


def _record_to_model(record: FileRecord) -> FileModel:
    return FileModel(
        token=record.token,
        file_name=record.file_name,
        file_size=record.file_size,
        mime_type=record.mime_type,
        expiration_minutes=record.config.expiration_minutes,
        max_downloads=record.config.max_downloads,
        ip_restriction=record.config.ip_restriction,
        max_file_size=record.config.max_file_size,
        download_count=record.download_count,
        created_at=record.created_at,
        expires_at=record.expires_at,
    )


class SqlFilesRepository:
    """Metadata store backed by the ``files`` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _get_session(self):
        return self._session_factory()

    def create(self, record: FileRecord) -> FileRecord:
        try:
            with self._get_session() as session:
                session.add(_record_to_model(record))
                session.commit()
        except IntegrityError as e:
            raise DuplicateTokenError(f"Token already exists: {record.token[:6]}…") from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create file record: {e}") from e
        return record

    def get(self, token: str) -> FileRecord | None:
        try:
            with self._get_session() as session:
                model = session.get(FileModel, token)
                return _model_to_record(model) if model else None
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read file record: {e}") from e

    def exists(self, token: str) -> bool:
        try:
            with self._get_session() as session:
                return session.scalar(select(FileModel.token).filter_by(token=token)) is not None
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read file record: {e}") from e

    def try_consume(self, token: str) -> int | None:
        stmt = (
            update(FileModel)
            .where(
                FileModel.token == token,
                FileModel.download_count < FileModel.max_downloads,
            )
            .values(download_count=FileModel.download_count + 1)
        )
        try:
            with self._get_session() as session:
                result = session.execute(stmt)
                if result.rowcount != 1:
                    session.rollback()
                    return None
                # The updated row stays write-locked until commit
                count = session.scalar(select(FileModel.download_count).filter_by(token=token))
                session.commit()
                return count
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to record download: {e}") from e

    def delete(self, token: str) -> bool:
        try:
            with self._get_session() as session:
                result = session.execute(delete(FileModel).where(FileModel.token == token))
                session.commit()
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete file record: {e}") from e

    def list_expired(self, now: datetime) -> list[FileRecord]:
        try:
            with self._get_session() as session:
                models = session.scalars(
                    select(FileModel).where(FileModel.expires_at < now)
                ).all()
                return [_model_to_record(m) for m in models]
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list expired records: {e}") from e
