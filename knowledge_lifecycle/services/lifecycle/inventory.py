# knowledge_lifecycle/services/lifecycle/inventory.py
"""
Inventory collector for the hot tier.

Walks the configured corpus folders and builds a StorageInventory snapshot:
counts, sizes, per-extension and per-folder totals, and the aged objects.
Only reads. A folder whose listing fails is skipped with a warning.
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timezone

from knowledge_lifecycle.services.lifecycle.context import SweepContext
from knowledge_lifecycle.services.lifecycle.models import StorageInventory
from knowledge_lifecycle.storage.base import StorageObject, normalize_prefix

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def compute_age_days(obj: StorageObject, now: datetime) -> int:
    """
    Whole days since the object was last modified, rounded up.

    Falls back to the creation time, then to 0 when the store reported
    neither. Timestamps in the future count as age 0.
    """
    ts = obj.last_modified or obj.created_at
    if ts is None:
        return 0

    elapsed = (_as_utc(now) - _as_utc(ts)).total_seconds()
    if elapsed <= 0:
        return 0
    return math.ceil(elapsed / SECONDS_PER_DAY)


def is_excluded(path: str, excluded_prefixes: Sequence[str]) -> bool:
    """True when the key lives under one of the excluded folders."""
    return any(path.startswith(normalize_prefix(p)) for p in excluded_prefixes)


async def collect_inventory(
    ctx: SweepContext,
    folders: Sequence[str],
    archive_threshold_days: int,
    excluded_prefixes: Sequence[str] = (),
    now: datetime | None = None,
) -> StorageInventory:
    """
    Build an inventory of every object under the given folders.

    Args:
        ctx: Sweep context with the storage provider
        folders: Corpus folders to list
        archive_threshold_days: Objects strictly older than this go into aged_objects
        excluded_prefixes: Folders never counted (archive and export bundles)
        now: Reference time for ages (default: current UTC time)

    Returns:
        StorageInventory; objects are in folder order, then listing order
    """
    now = now or datetime.now(timezone.utc)
    inventory = StorageInventory(
        archive_threshold_days=archive_threshold_days,
        generated_at=now,
    )
    seen: set[str] = set()

    for folder in folders:
        try:
            listed = await ctx.list_objects(normalize_prefix(folder))
        except Exception as e:
            logger.warning(f"Failed to list files in {folder}: {e}")
            inventory.skipped_folders.append(folder)
            continue

        for obj in listed:
            # Nested corpus folders may overlap; count each key once
            if obj.path in seen or is_excluded(obj.path, excluded_prefixes):
                continue
            seen.add(obj.path)

            obj = replace(obj, age_days=compute_age_days(obj, now))
            inventory.objects.append(obj)
            inventory.total_files += 1
            inventory.total_size_bytes += obj.size_bytes
            inventory.count_by_extension[obj.extension] = inventory.count_by_extension.get(obj.extension, 0) + 1
            inventory.count_by_folder[folder] = inventory.count_by_folder.get(folder, 0) + 1

            if obj.age_days > archive_threshold_days:
                inventory.aged_objects.append(obj)

    logger.info(
        f"Inventory collected: {inventory.total_files} files, "
        f"{inventory.total_size_bytes} bytes, {len(inventory.aged_objects)} aged, "
        f"{len(inventory.skipped_folders)} folders skipped"
    )
    return inventory
