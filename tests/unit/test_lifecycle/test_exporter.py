# tests/unit/test_lifecycle/test_exporter.py
"""Unit tests for the bulk exporter."""

import pytest

from conftest import NOW
from knowledge_lifecycle.exceptions import UploadError
from knowledge_lifecycle.services.lifecycle.bundles import read_bundle_entries
from knowledge_lifecycle.services.lifecycle.exporter import export_corpus

EXPORT_PATH = "temp/exports/full_export_2025-06-01.zip"
FOLDERS = ["manuals", "processed", "temp"]
EXCLUDED = ["temp/archives", "temp/exports"]


async def export(ctx, **kwargs):
    kwargs.setdefault("excluded_prefixes", EXCLUDED)
    return await export_corpus(ctx, FOLDERS, "temp/exports", upload_retry_wait=0, now=NOW, **kwargs)


class TestExportCorpus:
    """Tests for export_corpus()."""

    @pytest.mark.asyncio
    async def test_every_object_exported_once(self, store, ctx):
        store.put("manuals/a.pdf", age_days=1)
        store.put("processed/r.json", age_days=400)
        store.put("temp/upload.txt", age_days=5)

        result = await export(ctx)

        assert result.export_path == EXPORT_PATH
        assert result.included_count == 3
        assert result.skipped_count == 0
        assert result.export_size_bytes == len(store.objects[EXPORT_PATH]["content"])
        assert sorted(read_bundle_entries(store.objects[EXPORT_PATH]["content"])) == [
            "manuals/a.pdf",
            "processed/r.json",
            "temp/upload.txt",
        ]

    @pytest.mark.asyncio
    async def test_never_deletes(self, store, ctx):
        store.put("manuals/a.pdf", age_days=400)

        await export(ctx)

        assert store.calls_for("delete") == []
        assert "manuals/a.pdf" in store.objects

    @pytest.mark.asyncio
    async def test_unreadable_objects_counted_as_skipped(self, store, ctx):
        store.put("manuals/a.pdf")
        store.put("manuals/b.pdf")
        store.fail_download.add("manuals/b.pdf")

        result = await export(ctx)

        assert result.included_count == 1
        assert result.skipped_count == 1
        assert read_bundle_entries(store.objects[EXPORT_PATH]["content"]) == ["manuals/a.pdf"]

    @pytest.mark.asyncio
    async def test_unlistable_folder_reported(self, store, ctx):
        store.put("processed/r.json")
        store.fail_list.add("manuals/")

        result = await export(ctx)

        assert result.skipped_folders == ["manuals"]
        assert result.included_count == 1

    @pytest.mark.asyncio
    async def test_existing_bundles_not_reexported(self, store, ctx):
        store.put("temp/archives/archive_2025-01-01.zip", b"PK")
        store.put("temp/exports/full_export_2025-05-01.zip", b"PK")
        store.put("temp/upload.txt")

        result = await export(ctx)

        assert result.included_count == 1
        assert read_bundle_entries(store.objects[EXPORT_PATH]["content"]) == ["temp/upload.txt"]

    @pytest.mark.asyncio
    async def test_empty_corpus_uploads_empty_bundle(self, store, ctx):
        result = await export(ctx)

        assert result.included_count == 0
        assert read_bundle_entries(store.objects[EXPORT_PATH]["content"]) == []

    @pytest.mark.asyncio
    async def test_upload_failure_raises(self, store, ctx):
        store.put("manuals/a.pdf")
        store.upload_failures = 1

        with pytest.raises(UploadError):
            await export(ctx, upload_max_attempts=1)
