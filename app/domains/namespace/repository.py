"""Metadata store for folders and file records."""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from sqlalchemy import delete, desc, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.exceptions.storage import StoreUnavailableError
from models import FileRecord, Folder

logger = logging.getLogger(__name__)


class MetadataStore:
    """
    Relational storage for Folder and FileRecord rows.

    ``None`` is matched as a value in parent/folder lookups, so passing
    ``None`` selects rows that live at the root. Every write commits
    immediately; callers that need several writes to land together must
    order them so each commit leaves the namespace consistent.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _guard(self, action: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Metadata store failed to {action}: {str(e)}")
            raise StoreUnavailableError(f"Failed to {action}") from e

    # Folders
    async def get_folder(self, folder_id: str) -> Folder | None:
        async with self._guard("fetch folder"):
            result = await self.db.execute(select(Folder).where(Folder.id == folder_id))
            return result.scalar_one_or_none()

    async def list_folders(self, parent_id: str | None) -> Sequence[Folder]:
        """Child folders of ``parent_id`` ordered by name."""
        async with self._guard("fetch folders"):
            stmt = (
                select(Folder)
                .where(Folder.parent_id.is_(None) if parent_id is None else Folder.parent_id == parent_id)
                .order_by(Folder.name.asc())
            )
            result = await self.db.execute(stmt)
            return result.scalars().all()

    async def insert_folder(self, folder: Folder) -> Folder:
        async with self._guard("create folder"):
            self.db.add(folder)
            await self.db.commit()
            return folder

    async def rename_folder(self, folder_id: str, name: str) -> bool:
        async with self._guard("rename folder"):
            result = await self.db.execute(
                update(Folder).where(Folder.id == folder_id).values(name=name)
            )
            await self.db.commit()
            return result.rowcount > 0

    async def delete_folder(self, folder_id: str) -> bool:
        async with self._guard("delete folder"):
            result = await self.db.execute(delete(Folder).where(Folder.id == folder_id))
            await self.db.commit()
            return result.rowcount > 0

    # File records
    async def get_file(self, file_id: str) -> FileRecord | None:
        async with self._guard("fetch file"):
            result = await self.db.execute(select(FileRecord).where(FileRecord.id == file_id))
            return result.scalar_one_or_none()

    async def list_files(self, folder_id: str | None) -> Sequence[FileRecord]:
        """Files directly inside ``folder_id``, newest first."""
        async with self._guard("fetch files"):
            stmt = (
                select(FileRecord)
                .where(
                    FileRecord.folder_id.is_(None)
                    if folder_id is None
                    else FileRecord.folder_id == folder_id
                )
                .order_by(desc(FileRecord.upload_date))
            )
            result = await self.db.execute(stmt)
            return result.scalars().all()

    async def list_all_files(self) -> Sequence[FileRecord]:
        async with self._guard("fetch files"):
            result = await self.db.execute(
                select(FileRecord).order_by(desc(FileRecord.upload_date))
            )
            return result.scalars().all()

    async def insert_file(self, record: FileRecord) -> FileRecord:
        async with self._guard("save file metadata"):
            self.db.add(record)
            await self.db.commit()
            return record

    async def rename_file(self, file_id: str, original_name: str) -> bool:
        async with self._guard("rename file"):
            result = await self.db.execute(
                update(FileRecord)
                .where(FileRecord.id == file_id)
                .values(original_name=original_name)
            )
            await self.db.commit()
            return result.rowcount > 0

    async def delete_file(self, file_id: str) -> bool:
        async with self._guard("delete file metadata"):
            result = await self.db.execute(delete(FileRecord).where(FileRecord.id == file_id))
            await self.db.commit()
            return result.rowcount > 0

    async def delete_files_in_folder(self, folder_id: str | None) -> int:
        async with self._guard("delete file metadata"):
            result = await self.db.execute(
                delete(FileRecord).where(
                    FileRecord.folder_id.is_(None)
                    if folder_id is None
                    else FileRecord.folder_id == folder_id
                )
            )
            await self.db.commit()
            return result.rowcount

    # Aggregates
    async def count_files(self) -> int:
        async with self._guard("fetch stats"):
            result = await self.db.execute(select(func.count(FileRecord.id)))
            return result.scalar() or 0

    async def total_size(self) -> int:
        async with self._guard("fetch stats"):
            result = await self.db.execute(select(func.sum(FileRecord.size)))
            return int(result.scalar() or 0)

    async def ping(self) -> None:
        async with self._guard("reach the database"):
            await self.db.execute(select(1))
