"""Central ORM module — imports all models for Alembic metadata discovery."""

from api.files.orm.file_model import FileModel

__all__ = [
    "FileModel",
]
