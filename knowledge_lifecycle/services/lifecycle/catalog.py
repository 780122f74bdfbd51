# knowledge_lifecycle/services/lifecycle/catalog.py
"""
Archive catalog: bundles previously written to the archive folder.

A direct lookup, not a sweep, so listing errors propagate.
"""

from datetime import datetime, timezone

from knowledge_lifecycle.exceptions import StorageError
from knowledge_lifecycle.services.lifecycle.context import SweepContext
from knowledge_lifecycle.services.lifecycle.models import ArchiveBundleMeta
from knowledge_lifecycle.storage.base import normalize_prefix

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(meta: ArchiveBundleMeta) -> datetime:
    ts = meta.created_at or meta.updated_at
    if ts is None:
        return _OLDEST
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


async def list_bundles(ctx: SweepContext, archive_folder: str) -> list[ArchiveBundleMeta]:
    """
    List bundles in the archive folder, newest first.

    Raises:
        StorageError: If the archive folder cannot be listed
    """
    try:
        listed = await ctx.list_objects(normalize_prefix(archive_folder))
    except StorageError as e:
        raise StorageError(f"Failed to list archives: {e}", key=archive_folder, stage="catalog") from e

    bundles = [
        ArchiveBundleMeta(
            name=obj.path.rsplit("/", 1)[-1],
            path=obj.path,
            size_bytes=obj.size_bytes,
            created_at=obj.created_at or obj.last_modified,
            updated_at=obj.last_modified,
        )
        for obj in listed
        if obj.path.endswith(".zip")
    ]
    return sorted(bundles, key=_sort_key, reverse=True)
