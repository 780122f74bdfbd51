# knowledge_lifecycle/storage/__init__.py
"""
Storage provider abstraction for knowledge-base artifacts.

Knowledge records, archive bundles and exports live in object storage (S3 or
an S3-compatible service). This module provides a clean interface for
list/download/upload/delete operations.
"""

from knowledge_lifecycle.storage.base import (
    ContentType,
    StorageMetadata,
    StorageObject,
    StorageProvider,
)
from knowledge_lifecycle.storage.factory import (
    get_storage_provider,
    reset_storage_provider,
    set_storage_provider,
)
from knowledge_lifecycle.storage.local_provider import LocalStorageProvider
from knowledge_lifecycle.storage.s3_provider import S3StorageProvider

__all__ = [
    "StorageProvider",
    "StorageObject",
    "StorageMetadata",
    "ContentType",
    "S3StorageProvider",
    "LocalStorageProvider",
    "get_storage_provider",
    "set_storage_provider",
    "reset_storage_provider",
]
