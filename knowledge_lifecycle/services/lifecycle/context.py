# knowledge_lifecycle/services/lifecycle/context.py
"""
Execution context shared by every sweep.

Wraps the blocking storage provider so each call runs off the event loop
with a timeout, and carries the stop signal checked at per-object
boundaries.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass

from knowledge_lifecycle.exceptions import StorageError
from knowledge_lifecycle.logging_config import log_storage_operation
from knowledge_lifecycle.services.resilience import run_store_call
from knowledge_lifecycle.storage.base import ContentType, StorageMetadata, StorageObject, StorageProvider

logger = logging.getLogger(__name__)


@dataclass
class Download:
    """Outcome of fetching one object."""

    key: str
    content: bytes | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.content is not None


@dataclass
class SweepContext:
    """
    Storage access for one sweep.

    max_workers bounds concurrent downloads; results are always yielded in
    request order.
    """

    storage: StorageProvider
    timeout_seconds: float = 30.0
    max_workers: int = 1
    stop_event: asyncio.Event | None = None

    def should_stop(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    async def list_objects(self, prefix: str) -> list[StorageObject]:
        with log_storage_operation("list", prefix):
            return await run_store_call(
                self.storage.list_objects,
                prefix,
                timeout_seconds=self.timeout_seconds,
                description=f"list {prefix}",
            )

    async def download(self, key: str) -> bytes:
        """Download one object. A missing object is an error here."""
        with log_storage_operation("download", key) as metrics:
            content = await run_store_call(
                self.storage.download,
                key,
                timeout_seconds=self.timeout_seconds,
                description=f"download {key}",
            )
            if content is None:
                raise StorageError(f"Object not found: {key}", key=key)
            metrics["size_bytes"] = len(content)
            return content

    async def upload(
        self,
        key: str,
        content: bytes,
        content_type: ContentType = ContentType.OCTET_STREAM,
        metadata: dict[str, str] | None = None,
    ) -> StorageMetadata:
        with log_storage_operation("upload", key) as metrics:
            result = await run_store_call(
                self.storage.upload,
                key,
                content,
                content_type,
                metadata,
                timeout_seconds=self.timeout_seconds,
                description=f"upload {key}",
            )
            metrics["size_bytes"] = len(content)
            return result

    async def delete(self, key: str) -> bool:
        with log_storage_operation("delete", key):
            return await run_store_call(
                self.storage.delete,
                key,
                timeout_seconds=self.timeout_seconds,
                description=f"delete {key}",
            )

    async def exists(self, key: str) -> bool:
        return await run_store_call(
            self.storage.exists,
            key,
            timeout_seconds=self.timeout_seconds,
            description=f"exists {key}",
        )

    async def _fetch(self, key: str) -> Download:
        try:
            return Download(key=key, content=await self.download(key))
        except Exception as e:
            logger.warning(f"Failed to download {key}: {e}")
            return Download(key=key, error=e)

    async def iter_downloads(self, keys: Sequence[str]) -> AsyncIterator[Download]:
        """
        Fetch objects in windows of max_workers, yielding in key order.

        Stops yielding once the stop signal is set; callers check
        should_stop() after the loop to tell a finished run from a stopped one.
        """
        window = max(1, self.max_workers)
        for start in range(0, len(keys), window):
            if self.should_stop():
                return
            batch = keys[start:start + window]
            if window == 1:
                results = [await self._fetch(batch[0])]
            else:
                results = await asyncio.gather(*(self._fetch(k) for k in batch))
            for result in results:
                yield result
