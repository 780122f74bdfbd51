# knowledge_lifecycle/routers/admin_lifecycle.py
"""
Admin endpoints for knowledge lifecycle management.

GET  /v1/admin/lifecycle/stats - Storage statistics and duplicates
POST /v1/admin/lifecycle/archive - Trigger manual archive sweep
POST /v1/admin/lifecycle/delete-old - Hard-delete objects past a threshold
GET  /v1/admin/lifecycle/duplicates - Report duplicate records
POST /v1/admin/lifecycle/duplicates/remove - Remove duplicate records
POST /v1/admin/lifecycle/export - Export the whole corpus
GET  /v1/admin/lifecycle/archives - List archive bundles
"""

import logging
import os
import secrets
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field

from knowledge_lifecycle.exceptions import (
    AdminAuthError,
    LifecycleError,
    PolicyError,
    StorageError,
    StorageNotConfiguredError,
    SweepInProgressError,
    UploadError,
)
from knowledge_lifecycle.services.lifecycle import (
    KnowledgeLifecycleService,
    RetentionPolicy,
    create_lifecycle_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin/lifecycle", tags=["admin-lifecycle"])

ADMIN_KEY_ENV = "LIFECYCLE_ADMIN_KEY"


def get_lifecycle_service() -> KnowledgeLifecycleService:
    """Service dependency; overridden in tests."""
    try:
        return create_lifecycle_service()
    except StorageNotConfiguredError as e:
        raise HTTPException(status_code=503, detail={"stage": e.stage, "message": str(e)})


def _raise_http(e: LifecycleError) -> None:
    if isinstance(e, AdminAuthError):
        status_code = 500 if e.stage == "configuration" else 401
    elif isinstance(e, PolicyError):
        status_code = 400
    elif isinstance(e, SweepInProgressError):
        status_code = 409
    elif isinstance(e, (StorageError, UploadError)):
        status_code = 502
    else:
        status_code = 500
    logger.warning(f"Lifecycle operation failed at {e.stage}: {e}")
    raise HTTPException(status_code=status_code, detail={"stage": e.stage, "message": str(e)}) from e


def require_admin_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    """Check X-API-Key against LIFECYCLE_ADMIN_KEY. Fails closed when the key is unset."""
    expected_key = os.getenv(ADMIN_KEY_ENV)
    try:
        if not expected_key:
            raise AdminAuthError(
                f"{ADMIN_KEY_ENV} is not set; lifecycle admin endpoints are disabled",
                stage="configuration",
            )
        if not x_api_key or not secrets.compare_digest(x_api_key, expected_key):
            raise AdminAuthError("Invalid or missing lifecycle admin key")
    except AdminAuthError as e:
        _raise_http(e)


# -----------------------------------------------------------------------------
# Response Models
# -----------------------------------------------------------------------------


class AgedObjectResponse(BaseModel):
    path: str
    size_bytes: int
    age_days: int
    last_modified: datetime | None = None


class DuplicatePairResponse(BaseModel):
    original_path: str
    duplicate_path: str
    title: str = ""


class StorageStatsResponse(BaseModel):
    """Storage statistics for the hot tier."""

    total_files: int
    total_size_bytes: int
    count_by_extension: dict[str, int]
    count_by_folder: dict[str, int]
    aged_objects: list[AgedObjectResponse]
    duplicates: list[DuplicatePairResponse]
    skipped_folders: list[str]
    archive_threshold_days: int
    generated_at: datetime | None = None
    message: str | None = None


class ArchiveResponse(BaseModel):
    """Archive sweep result."""

    archived: int
    deleted: int
    failed: int
    failed_downloads: int
    failed_deletes: int
    archive_path: str | None = None
    archive_size_bytes: int
    contained_paths: list[str]
    cancelled: bool
    message: str
    skipped_folders: list[str] = []


class DeleteResponse(BaseModel):
    """Delete-old-data result."""

    deleted: int
    failed: int
    total_size_bytes: int
    days_threshold: int
    cancelled: bool
    message: str
    skipped_folders: list[str] = []


class DuplicateRemovalResponse(BaseModel):
    """Duplicate removal result."""

    found: int
    removed: int
    failed: int
    cancelled: bool
    message: str


class ExportResponse(BaseModel):
    """Full-corpus export result."""

    export_path: str
    export_size_bytes: int
    included_count: int
    skipped_count: int
    skipped_folders: list[str]


class ArchiveBundleResponse(BaseModel):
    name: str
    path: str
    size_bytes: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ArchiveRequest(BaseModel):
    """Request to trigger archive. Thresholds default to the configured policy."""

    archive_threshold_days: int | None = Field(None, ge=1, description="Override archive threshold")
    deletion_threshold_days: int | None = Field(None, ge=1, description="Override deletion threshold")


class DeleteOldRequest(BaseModel):
    """Request to hard-delete old objects."""

    days: int = Field(..., ge=1, description="Delete objects at least this many days old")
    confirm: bool = Field(False, description="Required confirmation")


class RemoveDuplicatesRequest(BaseModel):
    confirm: bool = Field(False, description="Required confirmation")


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------


@router.get("/stats", response_model=StorageStatsResponse)
async def get_stats(
    include_duplicates: bool = Query(True, description="Also scan processed records for duplicates"),
    _: None = Depends(require_admin_key),
    service: KnowledgeLifecycleService = Depends(get_lifecycle_service),
) -> dict[str, Any]:
    """
    Get storage statistics.

    Returns file counts and sizes per extension and folder, objects past the
    archive threshold, and duplicate pairs in the processed folder.
    """
    try:
        inventory = await service.get_storage_stats(include_duplicates=include_duplicates)
    except LifecycleError as e:
        _raise_http(e)
    return inventory.to_dict()


@router.post("/archive", response_model=ArchiveResponse)
async def trigger_archive(
    request: ArchiveRequest,
    _: None = Depends(require_admin_key),
    service: KnowledgeLifecycleService = Depends(get_lifecycle_service),
) -> dict[str, Any]:
    """
    Trigger a manual archive sweep.

    Bundles archivable objects into the archive folder, then deletes them
    from the hot tier. Nothing is deleted if the bundle upload fails.
    """
    try:
        policy = None
        if request.archive_threshold_days is not None or request.deletion_threshold_days is not None:
            policy = RetentionPolicy(
                archive_threshold_days=(
                    service.policy.archive_threshold_days
                    if request.archive_threshold_days is None
                    else request.archive_threshold_days
                ),
                deletion_threshold_days=(
                    service.policy.deletion_threshold_days
                    if request.deletion_threshold_days is None
                    else request.deletion_threshold_days
                ),
            )
        result = await service.archive_old_data(policy)
    except LifecycleError as e:
        _raise_http(e)
    return result.to_dict()


@router.post("/delete-old", response_model=DeleteResponse)
async def trigger_delete_old(
    request: DeleteOldRequest,
    _: None = Depends(require_admin_key),
    service: KnowledgeLifecycleService = Depends(get_lifecycle_service),
) -> dict[str, Any]:
    """
    Hard-delete every hot-tier object at least `days` old.

    **WARNING**: This permanently deletes data without archiving it.

    Requires `confirm: true`.
    """
    if not request.confirm:
        raise HTTPException(status_code=400, detail="Delete requires 'confirm: true'")

    try:
        result = await service.delete_old_data(request.days)
    except LifecycleError as e:
        _raise_http(e)
    return result.to_dict()


@router.get("/duplicates", response_model=list[DuplicatePairResponse])
async def list_duplicates(
    _: None = Depends(require_admin_key),
    service: KnowledgeLifecycleService = Depends(get_lifecycle_service),
) -> list[dict[str, Any]]:
    """Report duplicate processed records without deleting anything."""
    try:
        duplicates = await service.find_duplicates()
    except LifecycleError as e:
        _raise_http(e)
    return [d.to_dict() for d in duplicates]


@router.post("/duplicates/remove", response_model=DuplicateRemovalResponse)
async def remove_duplicates(
    request: RemoveDuplicatesRequest,
    _: None = Depends(require_admin_key),
    service: KnowledgeLifecycleService = Depends(get_lifecycle_service),
) -> dict[str, Any]:
    """
    Delete every duplicate record. Originals are kept.

    Requires `confirm: true`.
    """
    if not request.confirm:
        raise HTTPException(status_code=400, detail="Duplicate removal requires 'confirm: true'")

    try:
        result = await service.remove_duplicates()
    except LifecycleError as e:
        _raise_http(e)
    return result.to_dict()


@router.post("/export", response_model=ExportResponse)
async def trigger_export(
    _: None = Depends(require_admin_key),
    service: KnowledgeLifecycleService = Depends(get_lifecycle_service),
) -> dict[str, Any]:
    """Bundle the whole corpus into the export folder."""
    try:
        result = await service.export_all_data()
    except LifecycleError as e:
        _raise_http(e)
    return result.to_dict()


@router.get("/archives", response_model=list[ArchiveBundleResponse])
async def list_archives(
    _: None = Depends(require_admin_key),
    service: KnowledgeLifecycleService = Depends(get_lifecycle_service),
) -> list[dict[str, Any]]:
    """List archive bundles, newest first."""
    try:
        bundles = await service.list_archives()
    except LifecycleError as e:
        _raise_http(e)
    return [b.to_dict() for b in bundles]
