# knowledge_lifecycle/storage/base.py
"""
Storage provider interface for knowledge-base artifacts.

Design principles:
- Knowledge artifacts (manuals, processed records, exports) live in object storage
- Keys are folder-prefixed logical paths ("processed/abc.json"), unique per store
- Listing returns size and timestamps only; content is fetched per key
- Deletes are delete-if-exists so sweeps can be re-run safely
- Providers are synchronous; the lifecycle engine runs them off the event loop
"""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, List


class ContentType(str, Enum):
    """Content types written by the lifecycle engine."""
    TEXT_PLAIN = "text/plain"
    APPLICATION_JSON = "application/json"
    APPLICATION_ZIP = "application/zip"
    OCTET_STREAM = "application/octet-stream"


@dataclass
class StorageObject:
    """
    One entry under a logical folder.

    age_days is filled in by the inventory pass and is never persisted.
    """
    path: str
    size_bytes: int = 0
    last_modified: Optional[datetime] = None
    created_at: Optional[datetime] = None
    age_days: int = 0

    @property
    def folder(self) -> str:
        """Top-level folder of the key."""
        return self.path.split("/", 1)[0] if "/" in self.path else ""

    @property
    def extension(self) -> str:
        """Text after the last dot of the file name (the whole name if there is none)."""
        return self.path.rsplit("/", 1)[-1].split(".")[-1]


@dataclass
class StorageMetadata:
    """Metadata returned after an upload."""
    uri: str  # Object key/path
    content_hash: str  # SHA256 of uploaded content
    content_type: ContentType
    size_bytes: int
    uploaded_at: datetime
    custom_metadata: Dict[str, str] = field(default_factory=dict)


def compute_content_hash(content: bytes) -> str:
    """Compute SHA256 hash of content."""
    return hashlib.sha256(content).hexdigest()


def normalize_prefix(prefix: str) -> str:
    """Folder prefixes always end with a single slash."""
    prefix = prefix.strip("/")
    return f"{prefix}/" if prefix else ""


class StorageProvider(ABC):
    """
    Abstract interface for object storage.

    Implementations must handle:
    - Listing every object under a prefix (pagination is the provider's job)
    - Raw byte download/upload (no transparent compression)
    - Idempotent deletes
    - Raising StorageError for store failures; returning None/False for "not found"
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 's3', 'local')."""
        pass

    @abstractmethod
    def list_objects(self, prefix: str) -> List[StorageObject]:
        """
        List all objects under a prefix.

        Args:
            prefix: Folder prefix (e.g., "processed/")

        Returns:
            StorageObject entries in the store's listing order

        Raises:
            StorageError: If the listing fails
        """
        pass

    @abstractmethod
    def download(self, key: str) -> Optional[bytes]:
        """
        Download an object's content.

        Returns:
            Content bytes, or None if the object does not exist
        """
        pass

    @abstractmethod
    def upload(
        self,
        key: str,
        content: bytes,
        content_type: ContentType = ContentType.OCTET_STREAM,
        metadata: Optional[Dict[str, str]] = None,
    ) -> StorageMetadata:
        """
        Upload content to storage, replacing any existing object.

        Raises:
            StorageError: If the upload fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Delete object from storage.

        Returns:
            True if something was deleted, False if it did not exist

        Raises:
            StorageError: If the delete call fails
        """
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if object exists."""
        pass

    @abstractmethod
    def get_metadata(self, key: str) -> Optional[StorageObject]:
        """
        Get size and timestamps without downloading content.

        Returns:
            StorageObject or None if not found
        """
        pass
