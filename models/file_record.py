"""
FileRecord model for uploaded file metadata.
"""

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, String

from .base import Base, generate_id, utcnow


class FileRecord(Base):
    """
    Metadata for one stored file.

    ``name`` is the Blob Store key and is never exposed as a display name;
    ``original_name`` is what users see and rename. Each record owns exactly
    one blob.
    """

    __tablename__ = "files"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False, unique=True)
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(255), nullable=False)
    size = Column(BigInteger, nullable=False)
    folder_id = Column(String(36), ForeignKey("folders.id"), nullable=True, index=True)
    upload_date = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<FileRecord id={self.id!r} original_name={self.original_name!r}>"
