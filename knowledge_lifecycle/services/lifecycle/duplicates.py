# knowledge_lifecycle/services/lifecycle/duplicates.py
"""
Duplicate detection for processed knowledge records.

Dedupe rule:
    digest(title + content[:content_chars]) is equal

Two long records that differ only after content_chars characters are
reported as duplicates. Records are visited in a deterministic order so the
same copy is always the original.
"""

import hashlib
import json
import logging
from dataclasses import dataclass

from knowledge_lifecycle.exceptions import StorageError
from knowledge_lifecycle.services.lifecycle.context import SweepContext
from knowledge_lifecycle.services.lifecycle.models import DuplicatePair
from knowledge_lifecycle.storage.base import StorageObject, normalize_prefix

logger = logging.getLogger(__name__)

SCAN_ORDERS = ("path", "last_modified")


@dataclass(frozen=True)
class ContentHasher:
    """Digest of a record's title and leading content."""

    algorithm: str = "md5"
    content_chars: int = 1000

    def __post_init__(self):
        if self.content_chars < 0:
            raise ValueError("content_chars must be >= 0")
        # Fail on unknown algorithms at construction, not mid-sweep
        hashlib.new(self.algorithm)

    @staticmethod
    def _text(value) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    def digest(self, title, content) -> str:
        text = self._text(title) + self._text(content)[: self.content_chars]
        return hashlib.new(self.algorithm, text.encode("utf-8")).hexdigest()


def sort_for_scan(objects: list[StorageObject], scan_order: str = "path") -> list[StorageObject]:
    """
    Order records so the first of each digest group is the original.

    path: lexicographic key order
    last_modified: oldest first, records without a timestamp last, ties by key
    """
    if scan_order == "path":
        return sorted(objects, key=lambda o: o.path)
    if scan_order == "last_modified":
        return sorted(
            objects,
            key=lambda o: (
                o.last_modified is None,
                o.last_modified.timestamp() if o.last_modified else 0.0,
                o.path,
            ),
        )
    raise ValueError(f"Unknown scan order: {scan_order}. Available: {', '.join(SCAN_ORDERS)}")


def parse_record(content: bytes) -> dict:
    """Parse a processed JSON record. Raises ValueError for anything but a JSON object."""
    data = json.loads(content.decode("utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


async def find_duplicates(
    ctx: SweepContext,
    folder: str,
    hasher: ContentHasher,
    scan_order: str = "path",
) -> list[DuplicatePair]:
    """
    Find content-identical records under the processed folder.

    Returns:
        DuplicatePair per later record whose digest matches an earlier one,
        in scan order

    Raises:
        StorageError: If the folder cannot be listed
    """
    try:
        listed = await ctx.list_objects(normalize_prefix(folder))
    except StorageError as e:
        raise StorageError(f"Failed to list {folder}: {e}", key=folder, stage="inventory") from e

    records = sort_for_scan([o for o in listed if o.path.endswith(".json")], scan_order)

    originals: dict[str, str] = {}
    duplicates: list[DuplicatePair] = []
    skipped = 0

    async for download in ctx.iter_downloads([r.path for r in records]):
        if not download.ok:
            skipped += 1
            continue

        try:
            data = parse_record(download.content)
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError are ValueErrors too
            logger.warning(f"Failed to parse {download.key}: {e}")
            skipped += 1
            continue

        digest = hasher.digest(data.get("title"), data.get("content"))
        original = originals.get(digest)
        if original is None:
            originals[digest] = download.key
        else:
            duplicates.append(
                DuplicatePair(
                    original_path=original,
                    duplicate_path=download.key,
                    title=ContentHasher._text(data.get("title")),
                )
            )

    logger.info(
        f"Duplicate scan of {folder}: {len(records)} records, "
        f"{len(duplicates)} duplicates, {skipped} skipped"
    )
    return duplicates
