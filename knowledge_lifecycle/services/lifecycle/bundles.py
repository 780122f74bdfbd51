# knowledge_lifecycle/services/lifecycle/bundles.py
"""
ZIP bundle building and upload, shared by archiving and export.

A bundle is built fully in memory and is only finalized after every
selected object has been read. Entry names are the objects' original keys so
extracting a bundle reproduces the corpus layout.
"""

import io
import logging
import zipfile
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from knowledge_lifecycle.exceptions import PackagingError, SweepCancelledError, UploadError
from knowledge_lifecycle.logging_config import ProgressTracker
from knowledge_lifecycle.services.lifecycle.context import SweepContext
from knowledge_lifecycle.services.resilience import with_retry
from knowledge_lifecycle.storage.base import ContentType, StorageMetadata, normalize_prefix

logger = logging.getLogger(__name__)


@dataclass
class BuiltBundle:
    """A finalized bundle that has not been uploaded yet."""

    content: bytes
    included: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def bundle_name(kind: str, now: datetime | None = None, with_time: bool = False) -> str:
    """
    Date-stamped bundle name, e.g. archive_2025-01-31.zip.

    with_time adds _HHMMSS for a second bundle on the same day.
    """
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%Y-%m-%d_%H%M%S") if with_time else now.strftime("%Y-%m-%d")
    return f"{kind}_{stamp}.zip"


def read_bundle_entries(content: bytes) -> list[str]:
    """Entry names of a bundle, in archive order."""
    with zipfile.ZipFile(io.BytesIO(content)) as zf:
        return zf.namelist()


async def build_bundle(
    ctx: SweepContext,
    keys: Sequence[str],
    stage: str,
    compression_level: int = 9,
) -> BuiltBundle:
    """
    Download every key into one in-memory ZIP.

    Objects that fail to download are left out and listed in ``failed``.

    Raises:
        SweepCancelledError: If the stop signal is set before all keys were read;
            the partial bundle is discarded
    """
    buffer = io.BytesIO()
    included: list[str] = []
    failed: list[str] = []
    tracker = ProgressTracker(total=len(keys), stage=stage)

    try:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=compression_level) as zf:
            async for download in ctx.iter_downloads(keys):
                if download.ok:
                    zf.writestr(download.key, download.content)
                    included.append(download.key)
                else:
                    failed.append(download.key)
                tracker.increment(download.ok)

            if ctx.should_stop() and len(included) + len(failed) < len(keys):
                raise SweepCancelledError(
                    f"Stopped after reading {len(included) + len(failed)}/{len(keys)} objects; bundle discarded",
                    stage=stage,
                )
    except (OSError, ValueError, zipfile.LargeZipFile) as e:
        raise PackagingError(f"Failed to build bundle: {e}") from e

    tracker.finish()
    return BuiltBundle(content=buffer.getvalue(), included=included, failed=failed)


async def choose_bundle_path(ctx: SweepContext, folder: str, kind: str, now: datetime | None = None) -> str:
    """
    Pick a bundle key in folder that does not overwrite an earlier bundle.

    Falls back to the timestamped name if the existence check itself fails.
    """
    now = now or datetime.now(timezone.utc)
    path = normalize_prefix(folder) + bundle_name(kind, now)
    try:
        taken = await ctx.exists(path)
    except Exception as e:
        logger.warning(f"Could not check whether {path} exists: {e}")
        taken = True

    if taken:
        path = normalize_prefix(folder) + bundle_name(kind, now, with_time=True)
    return path


async def upload_bundle(
    ctx: SweepContext,
    path: str,
    content: bytes,
    max_attempts: int = 3,
    metadata: dict[str, str] | None = None,
    retry_wait: float = 1.0,
) -> StorageMetadata:
    """
    Upload a finished bundle, retrying storage failures.

    Raises:
        UploadError: If every attempt failed
    """

    @with_retry(max_attempts=max_attempts, min_wait=retry_wait, max_wait=max(retry_wait, 10.0))
    async def _upload() -> StorageMetadata:
        return await ctx.upload(path, content, ContentType.APPLICATION_ZIP, metadata)

    try:
        return await _upload()
    except Exception as e:
        raise UploadError(f"Failed to upload bundle {path}: {e}") from e
