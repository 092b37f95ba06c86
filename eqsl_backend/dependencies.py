"""
Dependency wiring for the FastAPI app.

Backends are built once per app by ``build_catalog`` and kept on
``app.state``; routes reach them through the request.
"""

from __future__ import annotations

import logging

from fastapi import Request

from eqsl_backend.cache import CardListCache
from eqsl_backend.catalog import Catalog
from eqsl_backend.config import Settings
from eqsl_backend.storage import (
    CardStorageClient,
    CosStorageClient,
    InMemoryStorageClient,
)

logger = logging.getLogger(__name__)


def build_storage_client(settings: Settings) -> CardStorageClient:
    if settings.use_in_memory_backends or not settings.cos_bucket:
        logger.warning("No storage bucket configured, using in-memory storage")
        return InMemoryStorageClient()
    return CosStorageClient(
        bucket=settings.cos_bucket,
        region=settings.cos_region or "",
        endpoint=settings.cos_endpoint or "",
        access_key_id=settings.aws_access_key_id or "",
        secret_access_key=settings.aws_secret_access_key or "",
        public_base_url=settings.public_base_url,
        presign_expires_in=settings.presign_expires_in,
    )


def build_catalog(
    settings: Settings, storage: CardStorageClient | None = None
) -> Catalog:
    return Catalog(
        storage or build_storage_client(settings),
        CardListCache(ttl_seconds=settings.list_cache_ttl_seconds),
        folder=settings.storage_folder,
        max_results=settings.list_max_results,
        max_context_length=settings.max_context_length,
        thumbnail_width=settings.thumbnail_width,
    )


def get_catalog(request: Request) -> Catalog:
    return request.app.state.catalog
