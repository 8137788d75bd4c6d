"""Namespace service layer: folder and file operations across both stores.

Every operation that touches bytes and metadata follows one ordering rule:
the blob side moves first. Uploads write the blob, then insert the record.
If the insert fails, the blob is removed again only once the record is
confirmed absent. Deletes remove the blob, then the record, and keep the
record when the blob could not be removed. The record therefore never points
at bytes that were never written, and a failed delete can always be retried.
"""

import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass

from app.domains.namespace.repository import MetadataStore
from app.exceptions.base import InvalidArgumentError
from app.exceptions.storage import (
    BlobMissingError,
    DeleteFailedError,
    FileRecordNotFoundError,
    FolderNotFoundError,
    PartialDeleteFailureError,
    StoreUnavailableError,
)
from app.schemas.namespace import ItemKind, resolve_parent
from app.services.blob_store import (
    BlobNotFoundError,
    BlobStore,
    BlobStoreError,
    BlobTooLargeError,
    StoredBlob,
)
from models import FileRecord, Folder, generate_id, utcnow

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass
class FolderContents:
    folders: Sequence[Folder]
    files: Sequence[FileRecord]


@dataclass
class FileContent:
    """An opened blob together with the record that describes it."""

    record: FileRecord
    stream: AsyncIterator[bytes]
    as_attachment: bool


@dataclass
class CascadeResult:
    deleted_folders: int = 0
    deleted_files: int = 0


@dataclass
class StorageStats:
    count: int = 0
    total_size: int = 0


class NamespaceService:
    """Service class for namespace business logic."""

    def __init__(
        self,
        metadata: MetadataStore,
        blobs: BlobStore,
        max_upload_size: int | None = None,
    ):
        self.metadata = metadata
        self.blobs = blobs
        self.max_upload_size = max_upload_size

    # Listing
    async def list_contents(self, folder_id: str | None) -> FolderContents:
        """Return the direct children of a folder, or of the root for ``None``."""
        folder_id = resolve_parent(folder_id)
        await self._require_folder(folder_id)

        folders = await self.metadata.list_folders(folder_id)
        files = await self.metadata.list_files(folder_id)
        return FolderContents(folders=folders, files=files)

    async def list_files(self) -> Sequence[FileRecord]:
        return await self.metadata.list_all_files()

    async def compute_stats(self) -> StorageStats:
        count = await self.metadata.count_files()
        total_size = await self.metadata.total_size()
        return StorageStats(count=count, total_size=total_size)

    # Folders
    async def create_folder(self, name: str | None, parent_id: str | None = None) -> Folder:
        name = self._clean_name(name, "Name is required")
        parent_id = resolve_parent(parent_id)
        await self._require_folder(parent_id)

        folder = Folder(id=generate_id(), name=name, parent_id=parent_id, created_at=utcnow())
        folder = await self.metadata.insert_folder(folder)
        logger.info(f"Created folder {folder.id} ({folder.name!r}) under {parent_id or 'root'}")
        return folder

    async def delete_folder(self, folder_id: str) -> CascadeResult:
        """Delete a folder with every folder and file beneath it.

        The subtree is snapshotted up front and removed deepest-first, so an
        aborted cascade leaves a smaller but still connected tree behind.
        """
        folder = await self.metadata.get_folder(folder_id)
        if not folder:
            raise FolderNotFoundError(folder_id)

        subtree = await self._collect_subtree(folder.id)
        result = CascadeResult()

        for current_id in reversed(subtree):
            await self._purge_files(current_id, result)
            await self.metadata.delete_folder(current_id)
            result.deleted_folders += 1

        logger.info(
            f"Deleted folder {folder_id}: {result.deleted_folders} folder(s), "
            f"{result.deleted_files} file(s)"
        )
        return result

    async def _collect_subtree(self, root_id: str) -> list[str]:
        """Breadth-first list of ``root_id`` and all its descendants."""
        ordered = [root_id]
        seen = {root_id}
        index = 0
        while index < len(ordered):
            children = await self.metadata.list_folders(ordered[index])
            for child in children:
                if child.id not in seen:
                    seen.add(child.id)
                    ordered.append(child.id)
            index += 1
        return ordered

    async def _purge_files(self, folder_id: str, result: CascadeResult) -> None:
        # The second pass picks up files uploaded while the first pass ran.
        for _ in range(2):
            records = await self.metadata.list_files(folder_id)
            if not records:
                return
            for record in records:
                try:
                    await self._remove_blob(record)
                except BlobStoreError as e:
                    logger.error(
                        f"Cascade delete stopped at file {record.id} in folder {folder_id}: {e}"
                    )
                    raise PartialDeleteFailureError(
                        details={
                            "folder_id": folder_id,
                            "file_id": record.id,
                            "deleted_folders": result.deleted_folders,
                            "deleted_files": result.deleted_files,
                        }
                    ) from e
                await self.metadata.delete_file(record.id)
                result.deleted_files += 1

    # Files
    async def upload_file(
        self,
        content: AsyncIterator[bytes] | None,
        original_name: str | None,
        mime_type: str | None = None,
        folder_id: str | None = None,
    ) -> FileRecord:
        """Store ``content`` and register it in the namespace."""
        if content is None:
            raise InvalidArgumentError("No file uploaded")

        folder_id = resolve_parent(folder_id)
        await self._require_folder(folder_id)

        try:
            blob = await self.blobs.write(content, max_size=self.max_upload_size)
        except BlobTooLargeError as e:
            raise InvalidArgumentError(str(e), details={"max_upload_size": e.limit}) from e
        except BlobStoreError as e:
            logger.error(f"Failed to store upload {original_name!r}: {e}")
            raise StoreUnavailableError("Failed to store file content") from e

        record = self._record_for(blob, original_name, mime_type, folder_id)
        record_id = record.id
        try:
            record = await self.metadata.insert_file(record)
        except BaseException:
            # Covers cancellation as well as store failures.
            await self._compensate(blob, record_id)
            raise

        logger.info(f"Uploaded file {record.id} ({record.original_name!r}, {record.size} bytes)")
        return record

    @staticmethod
    def _record_for(
        blob: StoredBlob,
        original_name: str | None,
        mime_type: str | None,
        folder_id: str | None,
    ) -> FileRecord:
        return FileRecord(
            id=generate_id(),
            name=blob.key,
            original_name=(original_name or "").strip() or blob.key,
            mime_type=mime_type or DEFAULT_MIME_TYPE,
            size=blob.size,
            folder_id=folder_id,
            upload_date=utcnow(),
        )

    async def _compensate(self, blob: StoredBlob, record_id: str) -> None:
        # The insert may have committed before failing; only an absent row frees the blob.
        try:
            saved = await self.metadata.get_file(record_id)
        except StoreUnavailableError:
            logger.error(f"Kept blob {blob.key}: could not confirm whether file {record_id} was saved")
            return
        if saved is not None:
            logger.error(f"File {record_id} was saved before the insert failed; keeping blob {blob.key}")
            return
        await self._discard_orphan(blob)

    async def _discard_orphan(self, blob: StoredBlob) -> None:
        try:
            await self.blobs.delete(blob.key)
        except BlobStoreError as e:
            logger.error(f"Orphaned blob {blob.key} could not be removed: {e}")
        else:
            logger.warning(f"Removed blob {blob.key} after its metadata insert failed")

    async def download_file(self, file_id: str) -> FileContent:
        return await self._open(file_id, as_attachment=True)

    async def view_file(self, file_id: str) -> FileContent:
        return await self._open(file_id, as_attachment=False)

    async def _open(self, file_id: str, as_attachment: bool) -> FileContent:
        record = await self._require_file(file_id)
        try:
            stream = await self.blobs.open(record.name)
        except BlobNotFoundError as e:
            logger.error(f"File {record.id} has no blob {record.name}")
            raise BlobMissingError(record.id) from e
        except BlobStoreError as e:
            logger.error(f"Failed to open blob for file {record.id}: {e}")
            raise StoreUnavailableError("Failed to read file content") from e
        return FileContent(record=record, stream=stream, as_attachment=as_attachment)

    async def delete_file(self, file_id: str) -> None:
        record = await self._require_file(file_id)
        try:
            await self._remove_blob(record)
        except BlobStoreError as e:
            logger.error(f"Failed to delete blob for file {record.id}: {e}")
            raise DeleteFailedError(details={"file_id": record.id}) from e

        await self.metadata.delete_file(record.id)
        logger.info(f"Deleted file {record.id} ({record.original_name!r})")

    async def _remove_blob(self, record: FileRecord) -> None:
        if not await self.blobs.delete(record.name):
            logger.warning(f"Blob {record.name} for file {record.id} was already absent")

    # Rename
    async def rename(self, item_id: str, kind: ItemKind | str, new_name: str | None) -> None:
        new_name = self._clean_name(new_name, "New name is required")
        try:
            kind = ItemKind(kind)
        except ValueError as e:
            raise InvalidArgumentError("Type must be 'file' or 'folder'") from e

        if kind == ItemKind.file:
            if not await self.metadata.rename_file(item_id, new_name):
                raise FileRecordNotFoundError(item_id)
        elif not await self.metadata.rename_folder(item_id, new_name):
            raise FolderNotFoundError(item_id)

        logger.info(f"Renamed {kind.value} {item_id} to {new_name!r}")

    # Private helpers
    @staticmethod
    def _clean_name(name: str | None, message: str) -> str:
        name = (name or "").strip()
        if not name:
            raise InvalidArgumentError(message)
        return name

    async def _require_folder(self, folder_id: str | None) -> None:
        if folder_id is not None and not await self.metadata.get_folder(folder_id):
            raise FolderNotFoundError(folder_id)

    async def _require_file(self, file_id: str) -> FileRecord:
        record = await self.metadata.get_file(file_id)
        if not record:
            raise FileRecordNotFoundError(file_id)
        return record
