# knowledge_lifecycle/services/lifecycle/exporter.py
"""
Bulk exporter: the whole corpus in one downloadable bundle.

Never deletes anything. Objects that cannot be read are left out and
counted; folders that cannot be listed are reported by name.
"""

import logging
from collections.abc import Sequence
from datetime import datetime

from knowledge_lifecycle.services.lifecycle.bundles import build_bundle, choose_bundle_path, upload_bundle
from knowledge_lifecycle.services.lifecycle.context import SweepContext
from knowledge_lifecycle.services.lifecycle.inventory import is_excluded
from knowledge_lifecycle.services.lifecycle.models import ExportResult
from knowledge_lifecycle.storage.base import normalize_prefix

logger = logging.getLogger(__name__)


async def export_corpus(
    ctx: SweepContext,
    folders: Sequence[str],
    export_folder: str,
    excluded_prefixes: Sequence[str] = (),
    compression_level: int = 9,
    upload_max_attempts: int = 3,
    upload_retry_wait: float = 1.0,
    now: datetime | None = None,
) -> ExportResult:
    """
    Bundle every object under the corpus folders and upload it to export_folder.

    Raises:
        SweepCancelledError: Stop signal before the upload
        PackagingError: The bundle could not be built
        UploadError: The bundle upload failed
    """
    logger.info("Exporting all data...")

    keys: list[str] = []
    seen: set[str] = set()
    skipped_folders: list[str] = []

    for folder in folders:
        try:
            listed = await ctx.list_objects(normalize_prefix(folder))
        except Exception as e:
            logger.warning(f"Failed to list files in {folder}: {e}")
            skipped_folders.append(folder)
            continue

        for obj in listed:
            if obj.path in seen or is_excluded(obj.path, excluded_prefixes):
                continue
            seen.add(obj.path)
            keys.append(obj.path)

    built = await build_bundle(ctx, keys, stage="export_download", compression_level=compression_level)

    export_path = await choose_bundle_path(ctx, export_folder, "full_export", now)
    await upload_bundle(
        ctx,
        export_path,
        built.content,
        max_attempts=upload_max_attempts,
        metadata={"entries": str(len(built.included))},
        retry_wait=upload_retry_wait,
    )

    logger.info(
        f"Export completed: {export_path} ({len(built.included)} included, {len(built.failed)} skipped)",
        extra={"event": "export_uploaded", "export_path": export_path, "size_bytes": len(built.content)},
    )

    return ExportResult(
        export_path=export_path,
        export_size_bytes=len(built.content),
        included_count=len(built.included),
        skipped_count=len(built.failed),
        skipped_folders=skipped_folders,
    )
