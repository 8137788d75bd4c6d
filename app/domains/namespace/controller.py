"""Namespace API controller with FastAPI endpoints."""

import logging
from collections.abc import AsyncIterator
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile
from fastapi.responses import StreamingResponse

from app.core.config import settings
from app.core.dependencies import get_namespace_service
from app.domains.namespace.service import FileContent, NamespaceService
from app.schemas.base import SuccessResponse
from app.schemas.namespace import (
    ROOT_SENTINEL,
    ContentsResponse,
    FileRecordResponse,
    FileUploadedResponse,
    FolderCreate,
    FolderCreatedResponse,
    FolderDeletedResponse,
    FolderResponse,
    RenameRequest,
    StatsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["namespace"])


@router.get("/contents", response_model=ContentsResponse)
async def list_contents(
    folder_id: str = Query(ROOT_SENTINEL, alias="folderId"),
    service: NamespaceService = Depends(get_namespace_service),
):
    """List the folders and files directly inside a folder."""
    contents = await service.list_contents(folder_id)
    return ContentsResponse(
        folders=[FolderResponse.model_validate(folder) for folder in contents.folders],
        files=[FileRecordResponse.model_validate(record) for record in contents.files],
    )


@router.post("/folders", response_model=FolderCreatedResponse)
async def create_folder(
    folder_data: FolderCreate,
    service: NamespaceService = Depends(get_namespace_service),
):
    """Create a folder under another folder or the root."""
    folder = await service.create_folder(folder_data.name, folder_data.parent_id)
    return FolderCreatedResponse(id=folder.id, name=folder.name)


@router.delete("/folders/{folder_id}", response_model=FolderDeletedResponse)
async def delete_folder(
    folder_id: str = Path(..., description="Folder ID"),
    service: NamespaceService = Depends(get_namespace_service),
):
    """Delete a folder and everything beneath it."""
    result = await service.delete_folder(folder_id)
    return FolderDeletedResponse(
        deleted_folders=result.deleted_folders, deleted_files=result.deleted_files
    )


@router.get("/files", response_model=list[FileRecordResponse])
async def list_files(service: NamespaceService = Depends(get_namespace_service)):
    """List every file in the namespace, newest first."""
    records = await service.list_files()
    return [FileRecordResponse.model_validate(record) for record in records]


async def _iter_upload(upload: UploadFile, chunk_size: int) -> AsyncIterator[bytes]:
    while chunk := await upload.read(chunk_size):
        yield chunk


@router.post("/upload", response_model=FileUploadedResponse)
async def upload_file(
    file: UploadFile | None = File(None),
    folder_id: str | None = Form(None, alias="folderId"),
    service: NamespaceService = Depends(get_namespace_service),
):
    """Upload one file into a folder or the root."""
    content = _iter_upload(file, settings.upload_chunk_size) if file is not None else None
    record = await service.upload_file(
        content,
        original_name=file.filename if file is not None else None,
        mime_type=file.content_type if file is not None else None,
        folder_id=folder_id,
    )
    return FileUploadedResponse(id=record.id, name=record.original_name)


def _stream_response(content: FileContent) -> StreamingResponse:
    record = content.record
    headers = {"Content-Length": str(record.size)}
    if content.as_attachment:
        headers["Content-Disposition"] = f"attachment; filename*=UTF-8''{quote(record.original_name)}"
    return StreamingResponse(content.stream, media_type=record.mime_type, headers=headers)


@router.get("/files/{file_id}/download")
async def download_file(
    file_id: str = Path(..., description="File ID"),
    service: NamespaceService = Depends(get_namespace_service),
):
    """Download a file under its display name."""
    return _stream_response(await service.download_file(file_id))


@router.get("/files/{file_id}/view")
async def view_file(
    file_id: str = Path(..., description="File ID"),
    service: NamespaceService = Depends(get_namespace_service),
):
    """Stream a file inline with its content type."""
    return _stream_response(await service.view_file(file_id))


@router.delete("/files/{file_id}", response_model=SuccessResponse)
async def delete_file(
    file_id: str = Path(..., description="File ID"),
    service: NamespaceService = Depends(get_namespace_service),
):
    """Delete a file and its content."""
    await service.delete_file(file_id)
    return SuccessResponse()


@router.post("/rename", response_model=SuccessResponse)
async def rename(
    rename_data: RenameRequest,
    service: NamespaceService = Depends(get_namespace_service),
):
    """Rename a file or folder."""
    await service.rename(rename_data.id, rename_data.type, rename_data.new_name)
    return SuccessResponse()


@router.get("/stats", response_model=StatsResponse)
async def get_stats(service: NamespaceService = Depends(get_namespace_service)):
    """Aggregate file count and total size."""
    stats = await service.compute_stats()
    return StatsResponse(count=stats.count, total_size=stats.total_size)
