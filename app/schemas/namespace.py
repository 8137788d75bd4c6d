"""Namespace schemas for request/response serialization."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field, field_validator

from .base import BaseSchema, SuccessResponse

ROOT_SENTINEL = "root"


def resolve_parent(value: str | None) -> str | None:
    """Translate the wire ``root`` sentinel (or an empty value) into ``None``."""
    if value is None:
        return None
    value = value.strip()
    if not value or value == ROOT_SENTINEL:
        return None
    return value


class ItemKind(str, Enum):
    file = "file"
    folder = "folder"


class FolderCreate(BaseSchema):
    """Schema for creating a folder."""

    name: str = ""
    parent_id: str | None = Field(default=None, alias="parentId")

    @field_validator("parent_id")
    @classmethod
    def validate_parent(cls, v: str | None) -> str | None:
        return resolve_parent(v)


class RenameRequest(BaseSchema):
    """Schema for renaming a file or folder."""

    id: str
    type: ItemKind
    new_name: str = Field(default="", alias="newName")


class FolderResponse(BaseSchema):
    id: str
    name: str
    parent_id: str | None = None
    created_at: datetime


class FileRecordResponse(BaseSchema):
    id: str
    name: str
    original_name: str
    mime_type: str
    size: int
    folder_id: str | None = None
    upload_date: datetime


class ContentsResponse(BaseSchema):
    folders: list[FolderResponse]
    files: list[FileRecordResponse]


class FolderCreatedResponse(BaseSchema):
    id: str
    name: str


class FileUploadedResponse(BaseSchema):
    id: str
    name: str


class FolderDeletedResponse(SuccessResponse):
    deleted_folders: int = Field(alias="deletedFolders")
    deleted_files: int = Field(alias="deletedFiles")


class StatsResponse(BaseSchema):
    count: int = 0
    total_size: int = Field(default=0, alias="totalSize")
