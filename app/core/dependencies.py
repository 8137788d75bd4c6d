# app/core/dependencies.py
"""FastAPI dependency providers for the storage stack.

The stores are built here and handed to ``NamespaceService`` explicitly, so
tests can override any layer through ``app.dependency_overrides``.
"""
import logging
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.database import get_db
from app.domains.namespace.repository import MetadataStore
from app.domains.namespace.service import NamespaceService
from app.services.blob_store import BlobStore

logger = logging.getLogger(__name__)


@lru_cache
def get_blob_store() -> BlobStore:
    """Blob store rooted at the configured storage directory."""
    logger.info(f"Using blob storage at {settings.storage_path}")
    return BlobStore(settings.storage_path, chunk_size=settings.upload_chunk_size)


async def get_metadata_store(db: AsyncSession = Depends(get_db)) -> MetadataStore:
    return MetadataStore(db)


async def get_namespace_service(
    metadata: MetadataStore = Depends(get_metadata_store),
    blobs: BlobStore = Depends(get_blob_store),
) -> NamespaceService:
    return NamespaceService(metadata, blobs, max_upload_size=settings.max_upload_size)
