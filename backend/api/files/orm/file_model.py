"""File ORM model."""

from sqlalchemy import BigInteger, Column, DateTime, Integer, String

from database import Base


class FileModel(Base):
    __tablename__ = "files"

    token = Column(String(64), primary_key=True)
    file_name = Column(String(255), nullable=False)
    file_size = Column(BigInteger, nullable=False, default=0)
    mime_type = Column(String(255), nullable=False)
    expiration_minutes = Column(Integer, nullable=False)
    max_downloads = Column(Integer, nullable=False)
    ip_restriction = Column(String, nullable=True)
    max_file_size = Column(BigInteger, nullable=False)
    download_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
