"""
Models package initialization.
"""

from .base import Base, generate_id, utcnow
from .file_record import FileRecord
from .folder import Folder

__all__ = [
    "Base",
    "Folder",
    "FileRecord",
    "generate_id",
    "utcnow",
]
