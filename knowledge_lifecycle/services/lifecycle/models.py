# knowledge_lifecycle/services/lifecycle/models.py
"""
Value types shared by the lifecycle services.

None of these are persisted. Inventories and duplicate pairs are rebuilt on
every call; bundles are described by what was uploaded.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime

from knowledge_lifecycle.exceptions import PolicyError
from knowledge_lifecycle.storage.base import StorageObject


def _object_dict(obj: StorageObject) -> dict:
    return {
        "path": obj.path,
        "size_bytes": obj.size_bytes,
        "age_days": obj.age_days,
        "last_modified": obj.last_modified.isoformat() if obj.last_modified else None,
    }


@dataclass(frozen=True)
class RetentionPolicy:
    """
    Retention thresholds in days.

    archive_threshold_days: objects at least this old are archivable
    deletion_threshold_days: objects at least this old are deletable
    """

    archive_threshold_days: int
    deletion_threshold_days: int

    def __post_init__(self):
        for name in ("archive_threshold_days", "deletion_threshold_days"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise PolicyError(f"{name} must be a positive integer, got {value!r}")
        if self.deletion_threshold_days < self.archive_threshold_days:
            raise PolicyError(
                f"deletion_threshold_days ({self.deletion_threshold_days}) must be >= "
                f"archive_threshold_days ({self.archive_threshold_days})"
            )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DuplicatePair:
    """A record whose content digest matches an earlier record."""

    original_path: str
    duplicate_path: str
    title: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StorageInventory:
    """Snapshot of the hot tier, rebuilt on each call."""

    total_files: int = 0
    total_size_bytes: int = 0
    count_by_extension: dict[str, int] = field(default_factory=dict)
    count_by_folder: dict[str, int] = field(default_factory=dict)
    aged_objects: list[StorageObject] = field(default_factory=list)
    duplicates: list[DuplicatePair] = field(default_factory=list)
    objects: list[StorageObject] = field(default_factory=list)
    skipped_folders: list[str] = field(default_factory=list)
    archive_threshold_days: int = 0
    generated_at: datetime | None = None
    message: str | None = None

    def to_dict(self) -> dict:
        return {
            "total_files": self.total_files,
            "total_size_bytes": self.total_size_bytes,
            "count_by_extension": dict(self.count_by_extension),
            "count_by_folder": dict(self.count_by_folder),
            "aged_objects": [_object_dict(o) for o in self.aged_objects],
            "duplicates": [d.to_dict() for d in self.duplicates],
            "skipped_folders": list(self.skipped_folders),
            "archive_threshold_days": self.archive_threshold_days,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
            "message": self.message,
        }


@dataclass
class RetentionClassification:
    """Partition of an inventory into retention tiers."""

    fresh: list[StorageObject] = field(default_factory=list)
    archivable: list[StorageObject] = field(default_factory=list)
    deletable: list[StorageObject] = field(default_factory=list)


@dataclass
class ArchiveBundle:
    """One uploaded bundle. Immutable once written."""

    name: str
    storage_path: str
    size_bytes: int
    contained_paths: list[str] = field(default_factory=list)


@dataclass
class ArchiveBundleMeta:
    """Catalog row for a previously produced bundle."""

    name: str
    path: str
    size_bytes: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class ArchiveResult:
    """Result of an archive sweep."""

    archived: int = 0
    deleted: int = 0
    failed_downloads: int = 0
    failed_deletes: int = 0
    archive_path: str | None = None
    archive_size_bytes: int = 0
    contained_paths: list[str] = field(default_factory=list)
    cancelled: bool = False
    message: str = ""
    skipped_folders: list[str] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.failed_downloads + self.failed_deletes

    def to_dict(self) -> dict:
        data = asdict(self)
        data["failed"] = self.failed
        return data


@dataclass
class DeleteResult:
    """Result of a delete-old-data sweep."""

    deleted: int = 0
    failed: int = 0
    total_size_bytes: int = 0
    days_threshold: int = 0
    cancelled: bool = False
    message: str = ""
    skipped_folders: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DuplicateRemovalResult:
    """Result of a duplicate removal sweep."""

    found: int = 0
    removed: int = 0
    failed: int = 0
    cancelled: bool = False
    message: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ExportResult:
    """Result of a full-corpus export."""

    export_path: str
    export_size_bytes: int
    included_count: int = 0
    skipped_count: int = 0
    skipped_folders: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)
