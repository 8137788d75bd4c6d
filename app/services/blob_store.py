"""Filesystem blob store.

Raw file bytes live in one flat directory, one file per blob, named by an
opaque key. The store knows nothing about folders or display names; the
namespace tree exists only in the metadata store.
"""

import logging
import os
import secrets
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".part"


class BlobStoreError(Exception):
    """Raised when the blob store fails for any reason other than a missing key."""


class BlobNotFoundError(BlobStoreError):
    """Raised when a key has no blob behind it."""


class BlobTooLargeError(BlobStoreError):
    """Raised when a stream exceeds the configured size limit."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Content exceeds the maximum size of {limit} bytes")


@dataclass(frozen=True)
class StoredBlob:
    """Handle to a blob that has been fully written and flushed."""

    key: str
    size: int


class BlobStore:
    """
    Maps opaque keys to byte content inside ``root``.

    Writes go to ``<key>.part`` first and are renamed into place once the last
    chunk is flushed, so a key is only ever visible with its complete content.
    """

    def __init__(self, root: Path | str, chunk_size: int = 1024 * 1024):
        self.root = Path(root)
        self.chunk_size = chunk_size
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def generate_key() -> str:
        """Return a fresh key: nanosecond timestamp plus 128 random bits."""
        return f"{time.time_ns()}-{secrets.token_hex(16)}"

    def path_for(self, key: str) -> Path:
        if not key or key.startswith(".") or "/" in key or "\\" in key or os.sep in key:
            raise BlobStoreError(f"Invalid blob key: {key!r}")
        return self.root / key

    async def write(
        self, chunks: AsyncIterator[bytes], max_size: int | None = None
    ) -> StoredBlob:
        """Persist ``chunks`` under a new key and return the key with its byte count.

        Any failure, including cancellation mid-stream, removes the partial
        file before the error propagates.
        """
        key = self.generate_key()
        final_path = self.path_for(key)
        partial_path = final_path.with_name(final_path.name + PARTIAL_SUFFIX)
        size = 0

        try:
            async with aiofiles.open(partial_path, "wb") as f:
                async for chunk in chunks:
                    if not chunk:
                        continue
                    size += len(chunk)
                    if max_size is not None and size > max_size:
                        raise BlobTooLargeError(max_size)
                    await f.write(chunk)
                await f.flush()
            await aiofiles.os.replace(partial_path, final_path)
        except OSError as e:
            await self._discard(partial_path)
            raise BlobStoreError(f"Failed to write blob {key}: {e}") from e
        except BaseException:
            await self._discard(partial_path)
            raise

        logger.debug(f"Stored blob {key} ({size} bytes)")
        return StoredBlob(key=key, size=size)

    async def open(self, key: str) -> AsyncIterator[bytes]:
        """Open a blob for reading and return an iterator over its chunks.

        The file is opened eagerly so a missing blob is reported here rather
        than halfway through a response.
        """
        path = self.path_for(key)
        try:
            handle = await aiofiles.open(path, "rb")
        except FileNotFoundError as e:
            raise BlobNotFoundError(key) from e
        except OSError as e:
            raise BlobStoreError(f"Failed to open blob {key}: {e}") from e
        return self._iter_chunks(handle)

    async def _iter_chunks(self, handle) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await handle.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            await handle.close()

    async def read_bytes(self, key: str) -> bytes:
        """Read a whole blob into memory."""
        stream = await self.open(key)
        return b"".join([chunk async for chunk in stream])

    async def exists(self, key: str) -> bool:
        return await aiofiles.os.path.isfile(self.path_for(key))

    async def delete(self, key: str) -> bool:
        """Delete a blob. Returns False when it was already absent."""
        path = self.path_for(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise BlobStoreError(f"Failed to delete blob {key}: {e}") from e
        logger.debug(f"Deleted blob {key}")
        return True

    async def purge_partials(self) -> int:
        """Remove ``.part`` files left behind by writes that never completed."""
        removed = 0
        for entry in await aiofiles.os.listdir(self.root):
            if entry.endswith(PARTIAL_SUFFIX):
                await self._discard(self.root / entry)
                removed += 1
        if removed:
            logger.warning(f"Removed {removed} incomplete blob(s) from {self.root}")
        return removed

    async def check_writable(self) -> bool:
        return await aiofiles.os.path.isdir(self.root) and os.access(self.root, os.W_OK)

    async def _discard(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not remove partial blob {path.name}: {e}")
