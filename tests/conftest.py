# tests/conftest.py
"""
Pytest configuration and fixtures.

FakeStorageProvider is an in-memory object store with per-key failure
injection and a log of every call, so tests can assert on call order.
"""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest

from knowledge_lifecycle.exceptions import StorageError
from knowledge_lifecycle.storage.base import (
    ContentType,
    StorageMetadata,
    StorageObject,
    StorageProvider,
    compute_content_hash,
)

# Set test environment
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("STORAGE_PROVIDER", "local")

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeStorageProvider(StorageProvider):
    """In-memory StorageProvider for lifecycle tests."""

    def __init__(self, name: str = "s3"):
        self._name = name
        self.objects: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_list: set[str] = set()
        self.fail_download: set[str] = set()
        self.fail_delete: set[str] = set()
        self.fail_exists: set[str] = set()
        self.upload_failures = 0

    @property
    def name(self) -> str:
        return self._name

    def put(
        self,
        key: str,
        content: bytes | str = b"x",
        age_days: float | None = None,
        last_modified: datetime | None = None,
        created_at: datetime | None = None,
    ) -> None:
        """Seed an object without recording a call."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        if age_days is not None:
            last_modified = NOW - timedelta(days=age_days)
        self.objects[key] = {
            "content": content,
            "last_modified": last_modified,
            "created_at": created_at,
        }

    def put_record(self, key: str, title: str, content: str, **kwargs) -> None:
        self.put(key, json.dumps({"title": title, "content": content}), **kwargs)

    def keys(self) -> list[str]:
        return sorted(self.objects)

    def calls_for(self, operation: str) -> list[str]:
        return [key for op, key in self.calls if op == operation]

    def _describe(self, key: str) -> StorageObject:
        entry = self.objects[key]
        return StorageObject(
            path=key,
            size_bytes=len(entry["content"]),
            last_modified=entry["last_modified"],
            created_at=entry["created_at"],
        )

    def list_objects(self, prefix: str) -> list[StorageObject]:
        self.calls.append(("list", prefix))
        if prefix in self.fail_list:
            raise StorageError(f"list failed: {prefix}", key=prefix)
        return [self._describe(k) for k in sorted(self.objects) if k.startswith(prefix)]

    def download(self, key: str) -> bytes | None:
        self.calls.append(("download", key))
        if key in self.fail_download:
            raise StorageError(f"download failed: {key}", key=key)
        entry = self.objects.get(key)
        return entry["content"] if entry else None

    def upload(
        self,
        key: str,
        content: bytes,
        content_type: ContentType = ContentType.OCTET_STREAM,
        metadata: dict[str, str] | None = None,
    ) -> StorageMetadata:
        self.calls.append(("upload", key))
        if self.upload_failures:
            self.upload_failures -= 1
            raise StorageError(f"upload failed: {key}", key=key)
        self.objects[key] = {"content": content, "last_modified": NOW, "created_at": NOW}
        return StorageMetadata(
            uri=key,
            content_hash=compute_content_hash(content),
            content_type=content_type,
            size_bytes=len(content),
            uploaded_at=NOW,
            custom_metadata=metadata or {},
        )

    def delete(self, key: str) -> bool:
        self.calls.append(("delete", key))
        if key in self.fail_delete:
            raise StorageError(f"delete failed: {key}", key=key)
        return self.objects.pop(key, None) is not None

    def exists(self, key: str) -> bool:
        self.calls.append(("exists", key))
        if key in self.fail_exists:
            raise StorageError(f"exists failed: {key}", key=key)
        return key in self.objects

    def get_metadata(self, key: str) -> StorageObject | None:
        return self._describe(key) if key in self.objects else None


@pytest.fixture
def store():
    """Empty in-memory object store reporting itself as s3."""
    return FakeStorageProvider()


@pytest.fixture
def ctx(store):
    from knowledge_lifecycle.services.lifecycle.context import SweepContext

    return SweepContext(storage=store, timeout_seconds=5.0)


@pytest.fixture
def make_service(store):
    """Factory for a lifecycle service over the fake store with a fixed clock."""
    from knowledge_lifecycle.services.lifecycle import KnowledgeLifecycleService, RetentionPolicy

    def _make(**overrides):
        kwargs = {
            "storage": store,
            "policy": RetentionPolicy(archive_threshold_days=30, deletion_threshold_days=90),
            "corpus_folders": ["manuals", "processed", "temp"],
            "upload_max_attempts": 1,
            "upload_retry_wait": 0,
            "store_timeout_seconds": 5.0,
            "clock": lambda: NOW,
        }
        kwargs.update(overrides)
        return KnowledgeLifecycleService(**kwargs)

    return _make
