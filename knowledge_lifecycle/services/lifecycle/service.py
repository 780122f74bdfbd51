# knowledge_lifecycle/services/lifecycle/service.py
"""
Knowledge lifecycle service: the operations exposed to schedulers and admins.

Every operation is standalone and safe to re-run. "Nothing to do" is a
normal result, never an error. Operation-level failures raise a
LifecycleError subclass whose ``stage`` says where the sweep stopped.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from knowledge_lifecycle.config import Settings, get_settings
from knowledge_lifecycle.exceptions import LifecycleError, StorageError
from knowledge_lifecycle.logging_config import log_stage
from knowledge_lifecycle.services.lifecycle.catalog import list_bundles
from knowledge_lifecycle.services.lifecycle.classifier import classify, select_older_than, validate_days
from knowledge_lifecycle.services.lifecycle.context import SweepContext
from knowledge_lifecycle.services.lifecycle.duplicates import SCAN_ORDERS, ContentHasher, find_duplicates
from knowledge_lifecycle.services.lifecycle.exporter import export_corpus
from knowledge_lifecycle.services.lifecycle.inventory import collect_inventory
from knowledge_lifecycle.services.lifecycle.lease import SweepLease
from knowledge_lifecycle.services.lifecycle.models import (
    ArchiveBundleMeta,
    ArchiveResult,
    DeleteResult,
    DuplicatePair,
    DuplicateRemovalResult,
    ExportResult,
    RetentionPolicy,
    StorageInventory,
)
from knowledge_lifecycle.services.lifecycle.packager import archive_objects, delete_objects
from knowledge_lifecycle.storage.base import StorageProvider, normalize_prefix
from knowledge_lifecycle.storage.factory import get_storage_provider

logger = logging.getLogger(__name__)

LEASE_NAME = ".lifecycle.lease"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KnowledgeLifecycleService:
    """
    Lifecycle engine over one object store.

    The default retention policy is passed in explicitly; callers may
    override it per archive call.
    """

    def __init__(
        self,
        storage: StorageProvider,
        policy: RetentionPolicy,
        corpus_folders: Sequence[str],
        processed_folder: str = "processed",
        archive_folder: str = "temp/archives",
        export_folder: str = "temp/exports",
        hasher: ContentHasher | None = None,
        duplicate_scan_order: str = "path",
        store_timeout_seconds: float = 30.0,
        max_workers: int = 1,
        upload_max_attempts: int = 3,
        upload_retry_wait: float = 1.0,
        lease_ttl_seconds: int = 3600,
        compression_level: int = 9,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not isinstance(policy, RetentionPolicy):
            raise TypeError("policy must be a RetentionPolicy")
        if duplicate_scan_order not in SCAN_ORDERS:
            raise ValueError(f"Unknown scan order: {duplicate_scan_order}")

        self.storage = storage
        self.policy = policy
        self.corpus_folders = [f.strip("/") for f in corpus_folders]
        self.processed_folder = processed_folder.strip("/")
        self.archive_folder = archive_folder.strip("/")
        self.export_folder = export_folder.strip("/")
        self.hasher = hasher or ContentHasher()
        self.duplicate_scan_order = duplicate_scan_order
        self.store_timeout_seconds = store_timeout_seconds
        self.max_workers = max(1, max_workers)
        self.upload_max_attempts = upload_max_attempts
        self.upload_retry_wait = upload_retry_wait
        self.lease_ttl_seconds = lease_ttl_seconds
        self.compression_level = compression_level
        self.clock = clock

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @property
    def excluded_prefixes(self) -> list[str]:
        """Bundle folders are never part of the hot tier."""
        return [self.archive_folder, self.export_folder]

    @property
    def lease_key(self) -> str:
        return normalize_prefix(self.archive_folder) + LEASE_NAME

    def _context(self, stop_event: asyncio.Event | None = None) -> SweepContext:
        return SweepContext(
            storage=self.storage,
            timeout_seconds=self.store_timeout_seconds,
            max_workers=self.max_workers,
            stop_event=stop_event,
        )

    def _lease(self, ctx: SweepContext, operation: str) -> SweepLease:
        return SweepLease(ctx, self.lease_key, operation=operation, ttl_seconds=self.lease_ttl_seconds)

    async def _acquire(self, lease: SweepLease) -> None:
        try:
            await lease.acquire()
        except StorageError as e:
            raise LifecycleError(f"Could not acquire sweep lease: {e}", stage="lease") from e

    async def _inventory(self, ctx: SweepContext, archive_threshold_days: int) -> StorageInventory:
        return await collect_inventory(
            ctx,
            self.corpus_folders,
            archive_threshold_days,
            excluded_prefixes=self.excluded_prefixes,
            now=self.clock(),
        )

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def get_storage_stats(self, include_duplicates: bool = True) -> StorageInventory:
        """Inventory of the hot tier, with duplicate pairs of the processed folder."""
        with log_stage("storage_stats"):
            ctx = self._context()
            inventory = await self._inventory(ctx, self.policy.archive_threshold_days)

            if include_duplicates:
                try:
                    inventory.duplicates = await self._find_duplicates(ctx)
                except StorageError as e:
                    logger.warning(f"Duplicate scan skipped: {e}")

            if self.storage.name != "s3":
                inventory.message = f"Remote object storage is not enabled (provider: {self.storage.name})"
            return inventory

    async def archive_old_data(
        self,
        policy: RetentionPolicy | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> ArchiveResult:
        """
        Bundle archivable objects into the archive folder, then delete them.

        Objects at least deletion_threshold_days old are not archived; they
        belong to delete_old_data.
        """
        policy = policy or self.policy
        if not isinstance(policy, RetentionPolicy):
            raise TypeError("policy must be a RetentionPolicy")

        with log_stage("archive"):
            ctx = self._context(stop_event)
            lease = self._lease(ctx, "archive")
            await self._acquire(lease)
            try:
                inventory = await self._inventory(ctx, policy.archive_threshold_days)
                tiers = classify(inventory, policy)
                logger.info(
                    f"Retention tiers: {len(tiers.fresh)} fresh, {len(tiers.archivable)} archivable, "
                    f"{len(tiers.deletable)} deletable"
                )
                result = await archive_objects(
                    ctx,
                    tiers.archivable,
                    self.archive_folder,
                    compression_level=self.compression_level,
                    upload_max_attempts=self.upload_max_attempts,
                    upload_retry_wait=self.upload_retry_wait,
                    now=self.clock(),
                )
                result.skipped_folders = list(inventory.skipped_folders)
                return result
            finally:
                await lease.release()

    async def delete_old_data(
        self,
        days_threshold: int,
        stop_event: asyncio.Event | None = None,
    ) -> DeleteResult:
        """Hard-delete every hot-tier object at least days_threshold days old."""
        validate_days(days_threshold)

        with log_stage("delete_old"):
            ctx = self._context(stop_event)
            lease = self._lease(ctx, "delete_old")
            await self._acquire(lease)
            try:
                inventory = await self._inventory(ctx, self.policy.archive_threshold_days)
                selected = select_older_than(inventory, days_threshold)
                if not selected:
                    return DeleteResult(
                        days_threshold=days_threshold,
                        message="No files to delete",
                        skipped_folders=list(inventory.skipped_folders),
                    )

                logger.info(f"Deleting {len(selected)} files older than {days_threshold} days...")
                deleted, failed, stopped = await delete_objects(
                    ctx, [obj.path for obj in selected], stage="delete_old"
                )
                return DeleteResult(
                    deleted=deleted,
                    failed=failed,
                    total_size_bytes=sum(obj.size_bytes for obj in selected),
                    days_threshold=days_threshold,
                    cancelled=stopped,
                    message=f"Deleted {deleted} files",
                    skipped_folders=list(inventory.skipped_folders),
                )
            finally:
                await lease.release()

    async def _find_duplicates(self, ctx: SweepContext) -> list[DuplicatePair]:
        return await find_duplicates(ctx, self.processed_folder, self.hasher, self.duplicate_scan_order)

    async def find_duplicates(self, stop_event: asyncio.Event | None = None) -> list[DuplicatePair]:
        """Report duplicate records in the processed folder without deleting anything."""
        with log_stage("find_duplicates"):
            return await self._find_duplicates(self._context(stop_event))

    async def remove_duplicates(self, stop_event: asyncio.Event | None = None) -> DuplicateRemovalResult:
        """Detect duplicates again and delete every duplicate path. Originals are never deleted."""
        with log_stage("remove_duplicates"):
            ctx = self._context(stop_event)
            lease = self._lease(ctx, "remove_duplicates")
            await self._acquire(lease)
            try:
                duplicates = await self._find_duplicates(ctx)
                if ctx.should_stop():
                    logger.warning("Stop requested during duplicate scan; removing only duplicates found so far")
                if not duplicates:
                    return DuplicateRemovalResult(cancelled=ctx.should_stop(), message="No duplicates found")

                originals = {d.original_path for d in duplicates}
                targets = [d.duplicate_path for d in duplicates if d.duplicate_path not in originals]
                removed, failed, stopped = await delete_objects(ctx, targets, stage="remove_duplicates")
                return DuplicateRemovalResult(
                    found=len(duplicates),
                    removed=removed,
                    failed=failed,
                    cancelled=stopped or ctx.should_stop(),
                    message=f"Removed {removed} duplicate files",
                )
            finally:
                await lease.release()

    async def export_all_data(self, stop_event: asyncio.Event | None = None) -> ExportResult:
        """Bundle the whole corpus into the export folder. Deletes nothing."""
        with log_stage("export"):
            return await export_corpus(
                self._context(stop_event),
                self.corpus_folders,
                self.export_folder,
                excluded_prefixes=self.excluded_prefixes,
                compression_level=self.compression_level,
                upload_max_attempts=self.upload_max_attempts,
                upload_retry_wait=self.upload_retry_wait,
                now=self.clock(),
            )

    async def list_archives(self) -> list[ArchiveBundleMeta]:
        """Archive bundles, newest first."""
        return await list_bundles(self._context(), self.archive_folder)


def policy_from_settings(settings: Settings) -> RetentionPolicy:
    return RetentionPolicy(
        archive_threshold_days=settings.ARCHIVE_THRESHOLD_DAYS,
        deletion_threshold_days=settings.DELETION_THRESHOLD_DAYS,
    )


def create_lifecycle_service(
    settings: Settings | None = None,
    storage: StorageProvider | None = None,
) -> KnowledgeLifecycleService:
    """Build the service from application settings."""
    settings = settings or get_settings()
    storage = storage or get_storage_provider()

    return KnowledgeLifecycleService(
        storage=storage,
        policy=policy_from_settings(settings),
        corpus_folders=settings.corpus_folder_list,
        processed_folder=settings.PROCESSED_FOLDER,
        archive_folder=settings.ARCHIVE_FOLDER,
        export_folder=settings.EXPORT_FOLDER,
        hasher=ContentHasher(
            algorithm=settings.DUPLICATE_HASH_ALGORITHM,
            content_chars=settings.DUPLICATE_CONTENT_CHARS,
        ),
        duplicate_scan_order=settings.DUPLICATE_SCAN_ORDER,
        store_timeout_seconds=settings.STORE_CALL_TIMEOUT_SECONDS,
        max_workers=settings.LIFECYCLE_MAX_WORKERS,
        upload_max_attempts=settings.UPLOAD_MAX_ATTEMPTS,
        lease_ttl_seconds=settings.LIFECYCLE_LEASE_TTL_SECONDS,
        compression_level=settings.ZIP_COMPRESSION_LEVEL,
    )
