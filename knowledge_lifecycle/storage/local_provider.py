# knowledge_lifecycle/storage/local_provider.py
"""
Local filesystem storage provider for development and testing.

Mimics S3 behavior but stores files locally. Files dropped into the
directory by other tools are listed too; their timestamps come from the
filesystem when no sidecar metadata exists.
NOT for production use.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from knowledge_lifecycle.exceptions import StorageError
from knowledge_lifecycle.storage.base import (
    ContentType,
    StorageMetadata,
    StorageObject,
    StorageProvider,
    compute_content_hash,
    normalize_prefix,
)

logger = logging.getLogger(__name__)


class LocalStorageProvider(StorageProvider):
    """
    Local filesystem storage provider.

    Stores files in a directory structure that mimics S3, with a
    ``<key>.meta.json`` sidecar for content type and upload time.

    Configuration:
    - LOCAL_STORAGE_PATH: Base directory (default: ./storage)
    """

    def __init__(self, base_path: str | None = None):
        """
        Initialize local storage.

        Args:
            base_path: Base directory for storage (or LOCAL_STORAGE_PATH env)
        """
        self._base_path = Path(base_path or os.getenv("LOCAL_STORAGE_PATH", "./storage"))
        self._base_path.mkdir(parents=True, exist_ok=True)
        self._metadata_suffix = ".meta.json"

        logger.info(f"Local storage initialized: {self._base_path}")

    @property
    def name(self) -> str:
        return "local"

    def _get_path(self, key: str) -> Path:
        """Get filesystem path for key, with path traversal protection."""
        resolved = (self._base_path / key).resolve()
        if not resolved.is_relative_to(self._base_path.resolve()):
            raise ValueError("Path traversal detected")
        return resolved

    def _get_metadata_path(self, key: str) -> Path:
        """Get metadata file path for key, with path traversal protection."""
        resolved = (self._base_path / f"{key}{self._metadata_suffix}").resolve()
        if not resolved.is_relative_to(self._base_path.resolve()):
            raise ValueError("Path traversal detected")
        return resolved

    def _key_for(self, file_path: Path) -> str:
        return file_path.relative_to(self._base_path.resolve()).as_posix()

    def _load_metadata(self, key: str) -> dict | None:
        """Load sidecar metadata from file."""
        meta_path = self._get_metadata_path(key)
        if not meta_path.exists():
            return None

        try:
            return json.loads(meta_path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load metadata for {key}: {e}")
            return None

    def _describe(self, key: str, file_path: Path) -> StorageObject:
        stat = file_path.stat()
        meta = self._load_metadata(key) or {}

        last_modified = None
        if meta.get("uploaded_at"):
            last_modified = datetime.fromisoformat(meta["uploaded_at"])
        else:
            last_modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)

        created_at = None
        if meta.get("created_at"):
            created_at = datetime.fromisoformat(meta["created_at"])

        return StorageObject(
            path=key,
            size_bytes=stat.st_size,
            last_modified=last_modified,
            created_at=created_at,
        )

    def list_objects(self, prefix: str) -> list[StorageObject]:
        """List all objects with the given prefix, sorted by key."""
        prefix = normalize_prefix(prefix)
        prefix_path = self._get_path(prefix) if prefix else self._base_path.resolve()
        if not prefix_path.exists():
            return []

        objects = []
        try:
            for file_path in sorted(prefix_path.rglob("*")):
                if not file_path.is_file() or file_path.name.endswith(self._metadata_suffix):
                    continue
                key = self._key_for(file_path)
                objects.append(self._describe(key, file_path))
        except OSError as e:
            raise StorageError(f"Local list failed for {prefix}: {e}", key=prefix) from e

        return objects

    def download(self, key: str) -> bytes | None:
        """Read content from local filesystem."""
        file_path = self._get_path(key)
        if not file_path.is_file():
            return None

        try:
            return file_path.read_bytes()
        except OSError as e:
            raise StorageError(f"Local download failed for {key}: {e}", key=key) from e

    def upload(
        self,
        key: str,
        content: bytes,
        content_type: ContentType = ContentType.OCTET_STREAM,
        metadata: dict[str, str] | None = None,
    ) -> StorageMetadata:
        """Write content and sidecar metadata to local filesystem."""
        file_path = self._get_path(key)
        now = datetime.now(timezone.utc)

        existing = self._load_metadata(key) or {}
        storage_metadata = StorageMetadata(
            uri=key,
            content_hash=compute_content_hash(content),
            content_type=content_type,
            size_bytes=len(content),
            uploaded_at=now,
            custom_metadata=metadata or {},
        )

        meta_dict = {
            "uri": storage_metadata.uri,
            "content_hash": storage_metadata.content_hash,
            "content_type": storage_metadata.content_type.value,
            "size_bytes": storage_metadata.size_bytes,
            "uploaded_at": storage_metadata.uploaded_at.isoformat(),
            "created_at": existing.get("created_at") or now.isoformat(),
            "custom_metadata": storage_metadata.custom_metadata,
        }

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(content)
            self._get_metadata_path(key).write_text(json.dumps(meta_dict, indent=2))
        except OSError as e:
            raise StorageError(f"Local upload failed for {key}: {e}", key=key) from e

        logger.debug(f"Uploaded to local: {key}")
        return storage_metadata

    def delete(self, key: str) -> bool:
        """Delete object and metadata."""
        file_path = self._get_path(key)
        meta_path = self._get_metadata_path(key)

        deleted = False
        try:
            if file_path.exists():
                file_path.unlink()
                deleted = True
            if meta_path.exists():
                meta_path.unlink()
        except OSError as e:
            raise StorageError(f"Local delete failed for {key}: {e}", key=key) from e

        return deleted

    def exists(self, key: str) -> bool:
        """Check if object exists."""
        return self._get_path(key).is_file()

    def get_metadata(self, key: str) -> StorageObject | None:
        """Get size and timestamps without reading content."""
        file_path = self._get_path(key)
        if not file_path.is_file():
            return None
        return self._describe(key, file_path)
