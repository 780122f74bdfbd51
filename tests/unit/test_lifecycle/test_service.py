# tests/unit/test_lifecycle/test_service.py
"""Unit tests for KnowledgeLifecycleService operations."""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from knowledge_lifecycle.config import Settings
from knowledge_lifecycle.exceptions import (
    LifecycleError,
    PolicyError,
    StorageError,
    SweepInProgressError,
    UploadError,
)
from knowledge_lifecycle.services.lifecycle import (
    KnowledgeLifecycleService,
    RetentionPolicy,
    create_lifecycle_service,
)
from knowledge_lifecycle.services.lifecycle.bundles import read_bundle_entries

LEASE_KEY = "temp/archives/.lifecycle.lease"


def seed_ages(store, ages: dict[str, int]) -> None:
    for key, age in ages.items():
        store.put(key, key.encode(), age_days=age)


def hot_keys(store) -> list[str]:
    return [k for k in store.keys() if not k.startswith("temp/archives/") and not k.startswith("temp/exports/")]


class TestConstruction:
    def test_requires_retention_policy(self, store):
        with pytest.raises(TypeError):
            KnowledgeLifecycleService(storage=store, policy={"archive_threshold_days": 30}, corpus_folders=["manuals"])

    def test_rejects_unknown_scan_order(self, make_service):
        with pytest.raises(ValueError):
            make_service(duplicate_scan_order="random")

    def test_create_from_settings(self, store):
        settings = Settings(
            _env_file=None,
            CORPUS_FOLDERS="manuals,/processed/",
            ARCHIVE_THRESHOLD_DAYS=14,
            DELETION_THRESHOLD_DAYS=60,
            DUPLICATE_HASH_ALGORITHM="sha256",
            DUPLICATE_CONTENT_CHARS=500,
            LIFECYCLE_MAX_WORKERS=4,
        )

        service = create_lifecycle_service(settings=settings, storage=store)

        assert service.storage is store
        assert service.policy == RetentionPolicy(14, 60)
        assert service.corpus_folders == ["manuals", "processed"]
        assert service.hasher.algorithm == "sha256"
        assert service.hasher.content_chars == 500
        assert service.max_workers == 4
        assert service.lease_key == LEASE_KEY


class TestGetStorageStats:
    """Tests for get_storage_stats()."""

    @pytest.mark.asyncio
    async def test_stats_with_duplicates(self, store, make_service):
        store.put("manuals/a.pdf", b"12345", age_days=1)
        store.put_record("processed/a.json", "T", "c", age_days=40)
        store.put_record("processed/b.json", "T", "c", age_days=2)

        stats = await make_service().get_storage_stats()

        assert stats.total_files == 3
        assert stats.count_by_folder == {"manuals": 1, "processed": 2}
        assert [o.path for o in stats.aged_objects] == ["processed/a.json"]
        assert [(d.original_path, d.duplicate_path) for d in stats.duplicates] == [
            ("processed/a.json", "processed/b.json"),
        ]
        assert stats.message is None

    @pytest.mark.asyncio
    async def test_stats_ignore_bundle_folders(self, store, make_service):
        store.put("temp/archives/archive_2025-01-01.zip", age_days=100)
        store.put("temp/exports/full_export_2025-01-01.zip", age_days=100)

        stats = await make_service().get_storage_stats()

        assert stats.total_files == 0

    @pytest.mark.asyncio
    async def test_duplicate_scan_failure_does_not_fail_stats(self, store, make_service):
        store.put("manuals/a.pdf", age_days=1)
        original_list = store.list_objects
        calls = {"processed/": 0}

        def flaky_list(prefix):
            if prefix == "processed/":
                calls[prefix] += 1
                if calls[prefix] > 1:
                    raise StorageError("listing failed")
            return original_list(prefix)

        store.list_objects = flaky_list

        stats = await make_service().get_storage_stats()

        assert stats.total_files == 1
        assert stats.duplicates == []

    @pytest.mark.asyncio
    async def test_local_provider_message(self, store, make_service):
        store._name = "local"

        stats = await make_service().get_storage_stats()

        assert "not enabled" in stats.message

    @pytest.mark.asyncio
    async def test_to_dict_is_json_serializable(self, store, make_service):
        store.put("manuals/a.pdf", age_days=40)

        stats = await make_service().get_storage_stats()

        data = json.loads(json.dumps(stats.to_dict()))
        assert data["aged_objects"][0]["age_days"] == 40


class TestArchiveOldData:
    """Tests for archive_old_data()."""

    @pytest.mark.asyncio
    async def test_archives_only_archivable_tier(self, store, make_service):
        seed_ages(store, {
            "manuals/a10.pdf": 10,
            "manuals/b29.pdf": 29,
            "manuals/c31.pdf": 31,
            "manuals/d95.pdf": 95,
            "manuals/e400.pdf": 400,
        })

        result = await make_service().archive_old_data()

        assert result.archived == 1
        assert result.contained_paths == ["manuals/c31.pdf"]
        assert read_bundle_entries(store.objects[result.archive_path]["content"]) == ["manuals/c31.pdf"]
        assert hot_keys(store) == ["manuals/a10.pdf", "manuals/b29.pdf", "manuals/d95.pdf", "manuals/e400.pdf"]

    @pytest.mark.asyncio
    async def test_policy_override(self, store, make_service):
        seed_ages(store, {"manuals/a10.pdf": 10, "manuals/c31.pdf": 31})

        result = await make_service().archive_old_data(RetentionPolicy(7, 365))

        assert result.contained_paths == ["manuals/a10.pdf", "manuals/c31.pdf"]

    @pytest.mark.asyncio
    async def test_nothing_to_archive(self, store, make_service):
        seed_ages(store, {"manuals/a.pdf": 1})

        result = await make_service().archive_old_data()

        assert result.archived == 0
        assert result.message == "No files to archive"
        assert [k for k in store.calls_for("upload") if k != LEASE_KEY] == []

    @pytest.mark.asyncio
    async def test_unlistable_folders_are_reported(self, store, make_service):
        seed_ages(store, {"manuals/a.pdf": 40})
        store.fail_list.update({"manuals/", "processed/", "temp/"})

        result = await make_service().archive_old_data()

        assert result.archived == 0
        assert result.skipped_folders == ["manuals", "processed", "temp"]
        assert result.to_dict()["skipped_folders"] == ["manuals", "processed", "temp"]
        assert hot_keys(store) == ["manuals/a.pdf"]

    @pytest.mark.asyncio
    async def test_skipped_folder_reported_alongside_archive(self, store, make_service):
        seed_ages(store, {"manuals/a.pdf": 40, "processed/r.json": 40})
        store.fail_list.add("processed/")

        result = await make_service().archive_old_data()

        assert result.contained_paths == ["manuals/a.pdf"]
        assert result.skipped_folders == ["processed"]

    @pytest.mark.asyncio
    async def test_rerun_is_noop(self, store, make_service):
        seed_ages(store, {"manuals/c31.pdf": 31, "manuals/c45.pdf": 45})
        service = make_service()

        first = await service.archive_old_data()
        second = await service.archive_old_data()

        assert first.archived == 2
        assert second.archived == 0
        assert hot_keys(store) == []

    @pytest.mark.asyncio
    async def test_upload_failure_keeps_hot_tier(self, store, make_service):
        seed_ages(store, {"manuals/c31.pdf": 31})
        original_upload = store.upload

        def upload(key, *args, **kwargs):
            if key.endswith(".zip"):
                raise StorageError("bucket unavailable", key=key)
            return original_upload(key, *args, **kwargs)

        store.upload = upload

        with pytest.raises(UploadError):
            await make_service(upload_max_attempts=2).archive_old_data()

        assert hot_keys(store) == ["manuals/c31.pdf"]
        assert [k for k in store.calls_for("delete") if k != LEASE_KEY] == []
        assert LEASE_KEY not in store.objects

    @pytest.mark.asyncio
    async def test_partial_download_failure(self, store, make_service):
        seed_ages(store, {"manuals/a.pdf": 40, "manuals/b.pdf": 40, "manuals/c.pdf": 40})
        store.fail_download.add("manuals/b.pdf")

        result = await make_service().archive_old_data()

        assert result.contained_paths == ["manuals/a.pdf", "manuals/c.pdf"]
        assert result.failed == 1
        assert hot_keys(store) == ["manuals/b.pdf"]

    @pytest.mark.asyncio
    async def test_live_lease_blocks_sweep(self, store, make_service):
        seed_ages(store, {"manuals/c31.pdf": 31})
        expires = datetime.now(timezone.utc) + timedelta(minutes=30)
        store.put(LEASE_KEY, json.dumps({"owner": "other", "operation": "export", "expires_at": expires.isoformat()}))

        with pytest.raises(SweepInProgressError):
            await make_service().archive_old_data()

        assert hot_keys(store) == ["manuals/c31.pdf"]

    @pytest.mark.asyncio
    async def test_lease_released_after_sweep(self, store, make_service):
        seed_ages(store, {"manuals/c31.pdf": 31})

        await make_service().archive_old_data()

        assert LEASE_KEY in store.calls_for("upload")
        assert LEASE_KEY not in store.objects

    @pytest.mark.asyncio
    async def test_lease_storage_failure_has_lease_stage(self, store, make_service):
        store.fail_exists.add(LEASE_KEY)

        with pytest.raises(LifecycleError) as exc_info:
            await make_service().archive_old_data()

        assert exc_info.value.stage == "lease"

    @pytest.mark.asyncio
    async def test_concurrent_workers_same_result(self, store, make_service):
        seed_ages(store, {f"manuals/{i:02d}.pdf": 40 for i in range(9)})

        result = await make_service(max_workers=4).archive_old_data()

        assert result.contained_paths == [f"manuals/{i:02d}.pdf" for i in range(9)]
        assert hot_keys(store) == []


class TestDeleteOldData:
    """Tests for delete_old_data()."""

    @pytest.mark.asyncio
    async def test_deletes_objects_at_or_past_threshold(self, store, make_service):
        seed_ages(store, {"manuals/a.pdf": 89, "manuals/bb.pdf": 90, "processed/ccc.json": 400})

        result = await make_service().delete_old_data(90)

        assert result.deleted == 2
        assert result.failed == 0
        assert result.total_size_bytes == len("manuals/bb.pdf") + len("processed/ccc.json")
        assert result.days_threshold == 90
        assert hot_keys(store) == ["manuals/a.pdf"]

    @pytest.mark.asyncio
    async def test_nothing_to_delete(self, store, make_service):
        seed_ages(store, {"manuals/a.pdf": 1})

        result = await make_service().delete_old_data(90)

        assert result.deleted == 0
        assert result.message == "No files to delete"

    @pytest.mark.asyncio
    async def test_unlistable_folders_are_reported(self, store, make_service):
        seed_ages(store, {"manuals/a.pdf": 100})
        store.fail_list.update({"manuals/", "processed/", "temp/"})

        result = await make_service().delete_old_data(1)

        assert result.deleted == 0
        assert result.skipped_folders == ["manuals", "processed", "temp"]
        assert "manuals/a.pdf" in store.objects

    @pytest.mark.asyncio
    async def test_skipped_folder_reported_alongside_deletes(self, store, make_service):
        seed_ages(store, {"manuals/a.pdf": 100, "processed/r.json": 100})
        store.fail_list.add("processed/")

        result = await make_service().delete_old_data(90)

        assert result.deleted == 1
        assert result.skipped_folders == ["processed"]

    @pytest.mark.asyncio
    async def test_failures_counted(self, store, make_service):
        seed_ages(store, {"manuals/a.pdf": 100, "manuals/b.pdf": 100})
        store.fail_delete.add("manuals/a.pdf")

        result = await make_service().delete_old_data(90)

        assert (result.deleted, result.failed) == (1, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("days", [0, -1, 1.5, None])
    async def test_invalid_threshold(self, store, make_service, days):
        with pytest.raises(PolicyError):
            await make_service().delete_old_data(days)
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_stop_signal_reports_cancelled(self, store, make_service):
        seed_ages(store, {"manuals/a.pdf": 100})
        stop = asyncio.Event()
        stop.set()

        result = await make_service().delete_old_data(90, stop_event=stop)

        assert result.cancelled is True
        assert result.deleted == 0
        assert hot_keys(store) == ["manuals/a.pdf"]


class TestDuplicates:
    """Tests for find_duplicates() and remove_duplicates()."""

    @pytest.mark.asyncio
    async def test_find_is_read_only(self, store, make_service):
        store.put_record("processed/a.json", "T", "c")
        store.put_record("processed/b.json", "T", "c")

        pairs = await make_service().find_duplicates()

        assert len(pairs) == 1
        assert store.calls_for("delete") == []

    @pytest.mark.asyncio
    async def test_remove_keeps_originals(self, store, make_service):
        store.put_record("processed/a.json", "T", "c")
        store.put_record("processed/b.json", "T", "c")
        store.put_record("processed/c.json", "T", "c")
        store.put_record("processed/x.json", "Other", "c")

        result = await make_service().remove_duplicates()

        assert (result.found, result.removed, result.failed) == (2, 2, 0)
        assert hot_keys(store) == ["processed/a.json", "processed/x.json"]

    @pytest.mark.asyncio
    async def test_remove_with_no_duplicates(self, store, make_service):
        store.put_record("processed/a.json", "T", "c")

        result = await make_service().remove_duplicates()

        assert result.found == 0
        assert result.message == "No duplicates found"

    @pytest.mark.asyncio
    async def test_remove_counts_failures(self, store, make_service):
        store.put_record("processed/a.json", "T", "c")
        store.put_record("processed/b.json", "T", "c")
        store.fail_delete.add("processed/b.json")

        result = await make_service().remove_duplicates()

        assert (result.found, result.removed, result.failed) == (1, 0, 1)

    @pytest.mark.asyncio
    async def test_rerun_removes_nothing(self, store, make_service):
        store.put_record("processed/a.json", "T", "c")
        store.put_record("processed/b.json", "T", "c")
        service = make_service()

        await service.remove_duplicates()
        second = await service.remove_duplicates()

        assert second.found == 0
        assert hot_keys(store) == ["processed/a.json"]


class TestExportAndCatalog:
    @pytest.mark.asyncio
    async def test_export_then_list_archives(self, store, make_service):
        seed_ages(store, {"manuals/a.pdf": 1, "manuals/c31.pdf": 31})
        service = make_service()

        archived = await service.archive_old_data()
        exported = await service.export_all_data()
        bundles = await service.list_archives()

        assert exported.included_count == 1
        assert exported.export_path == "temp/exports/full_export_2025-06-01.zip"
        assert [b.path for b in bundles] == [archived.archive_path]
        assert "manuals/a.pdf" in store.objects
