# knowledge_lifecycle/services/lifecycle/packager.py
"""
Archive packager for aged hot-tier objects.

Process:
1. Download every selected object into one ZIP bundle
2. Upload the bundle to the archive folder under a date-stamped name
3. Only after the upload succeeded, delete each archived object

Download and delete failures are per-object: logged, counted, never fatal.
A failed download stays in the hot tier. A failed delete leaves the object in
both places until the next sweep archives it again.
"""

import logging
from collections.abc import Sequence
from datetime import datetime

from knowledge_lifecycle.services.lifecycle.bundles import (
    build_bundle,
    choose_bundle_path,
    upload_bundle,
)
from knowledge_lifecycle.services.lifecycle.context import SweepContext
from knowledge_lifecycle.services.lifecycle.models import ArchiveBundle, ArchiveResult
from knowledge_lifecycle.storage.base import StorageObject

logger = logging.getLogger(__name__)


async def delete_objects(ctx: SweepContext, keys: Sequence[str], stage: str) -> tuple[int, int, bool]:
    """
    Delete keys one by one.

    Returns:
        (deleted, failed, stopped). A key that was already gone counts as deleted.
    """
    deleted = 0
    failed = 0
    for key in keys:
        if ctx.should_stop():
            logger.warning(f"{stage}: stop requested, {len(keys) - deleted - failed} deletions not attempted")
            return deleted, failed, True
        try:
            await ctx.delete(key)
            deleted += 1
        except Exception as e:
            logger.warning(f"Failed to delete {key}: {e}")
            failed += 1
    return deleted, failed, False


async def archive_objects(
    ctx: SweepContext,
    objects: Sequence[StorageObject],
    archive_folder: str,
    compression_level: int = 9,
    upload_max_attempts: int = 3,
    upload_retry_wait: float = 1.0,
    now: datetime | None = None,
) -> ArchiveResult:
    """
    Bundle, upload, then delete the given objects.

    Returns:
        ArchiveResult; archived == 0 when nothing was selected

    Raises:
        SweepCancelledError: Stop signal before the upload; nothing was uploaded or deleted
        PackagingError: The bundle could not be built
        UploadError: The bundle upload failed; nothing was deleted
    """
    if not objects:
        return ArchiveResult(message="No files to archive")

    keys = [obj.path for obj in objects]
    logger.info(f"Archiving {len(keys)} files...")

    built = await build_bundle(ctx, keys, stage="archive_download", compression_level=compression_level)

    if not built.included:
        logger.warning(f"None of the {len(keys)} selected files could be read; no bundle uploaded")
        return ArchiveResult(
            failed_downloads=len(built.failed),
            message="No files could be read for archiving",
        )

    archive_path = await choose_bundle_path(ctx, archive_folder, "archive", now)
    await upload_bundle(
        ctx,
        archive_path,
        built.content,
        max_attempts=upload_max_attempts,
        metadata={"entries": str(len(built.included))},
        retry_wait=upload_retry_wait,
    )
    bundle = ArchiveBundle(
        name=archive_path.rsplit("/", 1)[-1],
        storage_path=archive_path,
        size_bytes=len(built.content),
        contained_paths=built.included,
    )
    logger.info(
        f"Archive created: {bundle.storage_path} ({bundle.size_bytes} bytes, {len(bundle.contained_paths)} files)",
        extra={"event": "archive_uploaded", "archive_path": bundle.storage_path, "size_bytes": bundle.size_bytes},
    )

    deleted, failed_deletes, stopped = await delete_objects(ctx, bundle.contained_paths, stage="archive_delete")

    return ArchiveResult(
        archived=len(bundle.contained_paths),
        deleted=deleted,
        failed_downloads=len(built.failed),
        failed_deletes=failed_deletes,
        archive_path=bundle.storage_path,
        archive_size_bytes=bundle.size_bytes,
        contained_paths=list(bundle.contained_paths),
        cancelled=stopped,
        message=f"Archived {len(bundle.contained_paths)} files",
    )
